__version__ = "0.1.0"

from . import config  # noqa: F401
from .errors import (  # noqa: F401
    AuthorizationError,
    B2Error,
    BackendError,
    QuotaExceededError,
    TransportError,
    UploadFailedError,
)
from .service import (  # noqa: F401
    Service,
    authorize_account,
    authorize_local_account,
    connect,
)
from .upload import (  # noqa: F401
    LargeUpload,
    cancel_large_file,
    upload_large_file,
)
