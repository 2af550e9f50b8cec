"""
Alpha Prompt Generator — Preview Store
In-memory preview handles for uploaded style reference images.

A handle is created when an image is picked and must be released when the
image is replaced, removed, submitted, or the wizard is reset.
"""
import threading
import uuid


class PreviewStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._previews = {}

    def create(self, data, mime_type):
        """Register image bytes and return a new handle for them."""
        handle = uuid.uuid4().hex
        with self._lock:
            self._previews[handle] = (data, mime_type)
        return handle

    def get(self, handle):
        """Return (data, mime_type), or None if the handle was released."""
        with self._lock:
            return self._previews.get(handle)

    def release(self, handle):
        """Drop a handle. Releasing an unknown or released handle is a no-op."""
        if not handle:
            return
        with self._lock:
            self._previews.pop(handle, None)

    def __len__(self):
        with self._lock:
            return len(self._previews)
