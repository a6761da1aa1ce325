from docstore.database import (
    AlreadyExistsError,
    BaseEntity,
    DocumentRepository,
    DynamoClientFactory,
    DynamoConfig,
    NotFoundError,
)

__version__ = "0.1.0"

__all__ = [
    "AlreadyExistsError",
    "BaseEntity",
    "DocumentRepository",
    "DynamoClientFactory",
    "DynamoConfig",
    "NotFoundError",
    "__version__",
]
