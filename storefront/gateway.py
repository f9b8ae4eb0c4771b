# storefront/gateway.py
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from storefront.models import PaymentRequest

logger = logging.getLogger(__name__)

# Returns the hosted widget object (anything with setup(config) -> handle)
WidgetLoader = Callable[[], Awaitable[Any]]


def static_loader(widget) -> WidgetLoader:
    async def load():
        return widget
    return load


class PaystackGateway:
    """Adapter around the hosted Paystack inline widget.

    ``initialize_payment`` hands control to the widget and returns at once.
    The outcome arrives later through exactly one of the request's
    ``on_success(reference)`` or ``on_close()`` callbacks; whichever the
    widget reports second is ignored. Async callbacks are scheduled as tasks
    on the running loop.
    """

    def __init__(self, public_key: str, currency: str = "GHS", loader: Optional[WidgetLoader] = None):
        self.public_key = public_key
        self.currency = currency
        self._loader = loader
        self._widget = None
        self._tasks: Set[asyncio.Task] = set()
        self.ready = False

    async def load(self) -> bool:
        if self.ready:
            return True
        if self._loader is None:
            logger.warning("No payment widget loader configured")
            return False
        try:
            self._widget = await self._loader()
        except Exception as e:
            logger.exception("Payment widget loader failed: %s", e)
            self._widget = None
        self.ready = self._widget is not None
        if not self.ready:
            logger.warning("Payment widget failed to load")
        return self.ready

    def initialize_payment(self, request: PaymentRequest) -> bool:
        public_key = request.public_key or self.public_key
        if not self.ready:
            logger.error("Payment widget is not ready yet; ignoring payment for %s", request.reference)
            return False
        if not public_key:
            logger.error("Paystack public key is not configured")
            return False
        if request.amount <= 0:
            logger.error("Refusing to start a payment of %s for %s", request.amount, request.reference)
            return False

        settled = {"done": False}

        def callback(response=None):
            if settled["done"]:
                logger.warning("Ignoring success callback for %s after the payment settled", request.reference)
                return
            settled["done"] = True
            reference = response.get("reference") if isinstance(response, dict) else response
            self._dispatch(request.on_success, reference or request.reference)

        def on_close():
            if settled["done"]:
                return
            settled["done"] = True
            self._dispatch(request.on_close)

        handle = self._widget.setup({
            "key": public_key,
            "email": request.email,
            "amount": request.amount,
            "currency": request.currency or self.currency,
            "ref": request.reference,
            "metadata": request.metadata,
            "callback": callback,
            "onClose": on_close,
        })
        handle.open_iframe()
        logger.info("Opened payment widget for %s (%s %s)", request.reference, request.amount, request.currency or self.currency)
        return True

    def _dispatch(self, fn: Callable, *args):
        result = fn(*args)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Payment callback failed: %s", task.exception())

    # Wait for callbacks the widget has already fired
    async def wait_idle(self):
        while self._tasks:
            pending = list(self._tasks)
            await asyncio.gather(*pending, return_exceptions=True)
            self._tasks.difference_update(pending)
