class ImageTransformError(Exception):
    """Base class for every error raised by the transform layer."""


class InvalidImageError(ImageTransformError, ValueError):
    """No current image is held, or the image is malformed."""


class InvalidArgumentError(ImageTransformError, ValueError):
    """A transform parameter is outside its documented range."""


class AllocationError(ImageTransformError, MemoryError):
    """A pixel buffer could not be built for the requested dimensions."""
