class CommonError(Exception):
    """Base exception for common app errors"""

    pass


class LockNotAcquiredError(CommonError):
    def __init__(self, lock_name: str):
        super().__init__(f"Could not acquire lock `{lock_name}` in time.")
        self.lock_name = lock_name
