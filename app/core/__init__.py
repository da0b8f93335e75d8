"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the chat domain apps.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError and its ValidationError, NotFoundError,
      PermissionDeniedError, RateLimitError and ExternalServiceError
      subclasses

Time (import from core.timestamps):
    - to_instant: Normalize any timestamp shape to epoch milliseconds

Rate limiting (import from core.ratelimit, core.decorators):
    - FixedWindowRateLimiter with InMemoryWindowStore / CacheWindowStore
    - rate_limit: DRF view method decorator

Protocols (import from core.protocols):
    - CacheBackend, Scheduler
"""
