"""
Domain exceptions and their HTTP mapping.

Services raise the domain exceptions below; routes translate them with the
BusinessError factories. External messages stay generic for server errors,
the real cause is logged internally.
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class StudyShelfError(Exception):
    """Base for every error the core reports to a caller."""


class ValidationError(StudyShelfError):
    """Bad input. Reported synchronously, nothing was mutated."""


class MaterialNotFound(StudyShelfError):
    def __init__(self, material_id):
        super().__init__(f"Material {material_id} not found")
        self.material_id = material_id


class ContentNotFound(StudyShelfError):
    def __init__(self, content_id):
        super().__init__(f"Content {content_id} not found")
        self.content_id = content_id


class TransferTooLarge(StudyShelfError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"Content is {size} bytes, limit is {limit}")
        self.size = size
        self.limit = limit


class InvalidTransition(StudyShelfError):
    def __init__(self, current, target):
        super().__init__(f"Cannot move session from {current} to {target}")
        self.current = current
        self.target = target


class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        404 for a missing catalog item, user or stored file.

        Example:
            if not material:
                raise BusinessError.not_found("Material")
        """
        if reason:
            logger.info(f"Not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found.",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation errors.

        OK to include specific details here since the caller caused the issue.
        Examples: "Title is required.", "Price must be a valid number or \"Free\"."
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from caller.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


def http_error_for(exc: StudyShelfError) -> HTTPException:
    """Translate a domain exception raised inside a route."""
    if isinstance(exc, ValidationError):
        return BusinessError.bad_request(str(exc))
    if isinstance(exc, MaterialNotFound):
        return BusinessError.not_found("Material", reason=str(exc))
    if isinstance(exc, ContentNotFound):
        return BusinessError.not_found("File", reason=str(exc))
    if isinstance(exc, TransferTooLarge):
        return BusinessError.bad_request("File is too large.")
    return BusinessError.server_error(exc)
