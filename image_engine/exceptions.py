class ImageEngineError(Exception):
    """Base exception for the image engine"""
    pass

class InvalidImageError(ImageEngineError):
    """Raised when input bytes cannot be decoded as an image"""
    pass

class BackendError(ImageEngineError):
    """Raised when an imaging backend primitive fails"""
    pass

class UnsupportedBackendError(ImageEngineError):
    """Raised when the configured backend name is not registered"""
    pass

class InvalidGeometryError(ImageEngineError, ValueError):
    """Raised when sizes or offsets cannot describe a valid transform"""
    pass

class UnsupportedFormatError(ImageEngineError, ValueError):
    """Raised when an output MIME type has no encoder"""
    pass
