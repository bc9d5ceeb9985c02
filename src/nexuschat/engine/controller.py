"""Orchestration of one send/receive cycle.

Hides how a user submission becomes transcript mutations:
- Input validation and single-flight admission
- Request derivation from the transcript (failed turns excluded)
- Placeholder insertion and in-place resolution
- Retrying the transport and absorbing every failure into a Failed message
"""

import asyncio

from ..errors import EmptyReply, InvalidInput
from ..log import get_logger
from ..transport import ChatTransport
from .models import ExchangeRequest, Message, MessageStatus
from .retry import RetryPolicy
from .session import Session

logger = get_logger(__name__)

DEFAULT_FALLBACK_TEXT = "I'm having trouble connecting right now. Please try again later."


class ExchangeController:
    """Drives exchanges for one Session.

    Example:
        controller = ExchangeController(session, transport)
        controller.send("Hello")        # returns immediately
        ...                             # observe session.transcript
    """

    def __init__(
        self,
        session: Session,
        transport: ChatTransport,
        retry_policy: RetryPolicy | None = None,
        fallback_text: str = DEFAULT_FALLBACK_TEXT,
        max_history: int | None = None,
    ) -> None:
        if not fallback_text:
            raise ValueError("fallback_text must not be empty")
        self._session = session
        self._transport = transport
        self._retry = retry_policy or RetryPolicy()
        self._fallback_text = fallback_text
        self._max_history = max_history
        self._tasks: set[asyncio.Task] = set()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def busy(self) -> bool:
        return self._session.busy

    def validate(self, user_text: str) -> str:
        """Return the trimmed text if it may be sent now.

        Raises:
            InvalidInput: Empty after trimming, or an exchange is in flight
        """
        text = (user_text or "").strip()
        if not text:
            raise InvalidInput("message is empty")
        if self._session.busy:
            raise InvalidInput("an exchange is already in flight")
        return text

    def _begin(self, user_text: str) -> tuple[ExchangeRequest, str, int] | None:
        """Admit the submission and perform the synchronous part of an exchange."""
        try:
            text = self.validate(user_text)
        except InvalidInput as e:
            logger.debug("Submission dropped: %s", e)
            return None

        session = self._session
        session.set_busy(True)
        # Context comes from the transcript as it stood before this exchange.
        request = ExchangeRequest.build(
            session.transcript.snapshot(), text, max_history=self._max_history
        )
        session.transcript.append(Message.user(text))
        placeholder_id = session.transcript.append(Message.placeholder())
        return request, placeholder_id, session.generation

    def send(self, user_text: str) -> asyncio.Task | None:
        """Submit a user message without waiting for the reply.

        Must be called from a running event loop. The user message and the
        placeholder are in the transcript when this returns.

        Returns:
            The task resolving the exchange, or None if the submission was
            rejected (empty text or busy)
        """
        admitted = self._begin(user_text)
        if admitted is None:
            return None
        task = asyncio.get_running_loop().create_task(self._resolve(*admitted))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def exchange(self, user_text: str) -> Message | None:
        """Submit a user message and wait for it to resolve.

        Returns:
            The resolved assistant message, or None if the submission was
            rejected or the session was reset before the reply arrived
        """
        task = self.send(user_text)
        if task is None:
            return None
        return await task

    async def _resolve(
        self,
        request: ExchangeRequest,
        placeholder_id: str,
        generation: int,
    ) -> Message | None:
        status = MessageStatus.FAILED
        text = self._fallback_text
        try:
            reply = await self._retry.run(
                lambda: self._transport.send_chat_request(request.history, request.new_turn)
            )
            if not reply:
                raise EmptyReply("transport returned an empty reply")
            status, text = MessageStatus.COMMITTED, reply
        except asyncio.CancelledError:
            logger.info("Exchange cancelled")
            raise
        except Exception as e:
            # Raw error detail stays in the logs, never in the transcript.
            logger.error("Exchange failed: %s", e)
            logger.debug("Exchange failure detail", exc_info=True)
        finally:
            resolved = self._settle(placeholder_id, generation, status, text)
        return resolved

    def _settle(
        self,
        placeholder_id: str,
        generation: int,
        status: MessageStatus,
        text: str,
    ) -> Message | None:
        transcript = self._session.transcript
        resolved = None
        try:
            if transcript.update_by_id(placeholder_id, status=status, text=text):
                resolved = transcript.get(placeholder_id)
            else:
                logger.debug("Discarding stale result for placeholder %s", placeholder_id)
        except ValueError:
            logger.exception("Could not resolve placeholder %s", placeholder_id)
        finally:
            # A reset already cleared busy and may have admitted a newer exchange.
            if generation == self._session.generation:
                self._session.set_busy(False)
        return resolved

    def reset(self) -> str:
        """Clear the conversation; safe while an exchange is in flight."""
        return self._session.reset()

    async def close(self) -> None:
        """Wait for outstanding exchanges to settle."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
