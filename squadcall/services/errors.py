class ServiceError(RuntimeError):
    """Recoverable service error; nothing was written when one is raised."""

    kind = "service_error"
    status_code = 400
    retryable = False

    def to_dict(self) -> dict:
        payload = {"error": self.kind, "detail": str(self)}
        if self.retryable:
            payload["retryable"] = True
        return payload


class ValidationError(ServiceError):
    kind = "validation_error"
    status_code = 400


class InvalidDomain(ServiceError):
    """The squad is scheduled through another path (premium squads)."""

    kind = "invalid_domain"
    status_code = 400


class Forbidden(ServiceError):
    kind = "forbidden"
    status_code = 403


class NotFound(ServiceError):
    kind = "not_found"
    status_code = 404


class Conflict(ServiceError):
    """A concurrent writer won; retry the whole operation."""

    kind = "conflict"
    status_code = 409
    retryable = True
