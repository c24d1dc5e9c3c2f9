from __future__ import annotations


class PropagationError(Exception):
    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message


class InvalidPropagationHeaderError(PropagationError):
    def __init__(self, header: str, cause: BaseException | None = None) -> None:
        super().__init__(f"unable to parse header into propagation context: {header}", cause)
        self.header = header
