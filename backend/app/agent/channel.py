"""Outbound side of a chat conversation, independent of the messaging platform."""


class ChatChannel:
    """
    What the flow needs from a chat platform: formatted text and a named
    binary attachment with a caption. TelegramChannel implements it for the
    bot; tests use an in-memory fake.
    """

    async def send_text(self, text: str, markdown: bool = True) -> None:
        raise NotImplementedError

    async def send_document(self, data: bytes, filename: str, caption: str = "") -> None:
        raise NotImplementedError
