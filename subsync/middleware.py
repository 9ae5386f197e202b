from .lifecycle import sync_lifecycle


class SyncLifecycleMiddleware:
    """Syncs the subscription products changed by a request once the view has finished."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        with sync_lifecycle():
            return self.get_response(request)
