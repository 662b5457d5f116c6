"""Domain exceptions shared by routes and services."""


class ThreadCraftError(RuntimeError):
    pass


class UserNotFoundError(ThreadCraftError):
    def __init__(self, user_id: str):
        super().__init__(f"No user found with clerk id: {user_id}")
        self.user_id = user_id


class InsufficientPointsError(ThreadCraftError):
    def __init__(self, balance: int, required: int):
        super().__init__(f"Not enough points: have {balance}, need {required}")
        self.balance = balance
        self.required = required


class GenerationError(ThreadCraftError):
    pass


class EmailSendError(ThreadCraftError):
    pass
