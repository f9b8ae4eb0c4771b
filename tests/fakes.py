# tests/fakes.py
from storefront.config import StorefrontSettings
from storefront.gateway import static_loader
from storefront.notify import Notifier
from storefront.session import StorefrontSession


class FakePaystack:
    """Stands in for the Paystack verify API; charges are recorded by the fake widget."""

    def __init__(self):
        self.charges = {}
        self.calls = []
        self.error = None

    def record_charge(self, reference, amount, currency="GHS", status="success"):
        self.charges[reference] = {"amount": amount, "currency": currency, "status": status}

    async def verify_transaction(self, reference):
        self.calls.append(reference)
        if self.error is not None:
            raise self.error
        charge = self.charges.get(reference)
        if charge is None:
            return {"status": False, "message": "Transaction reference not found"}
        return {
            "status": True,
            "message": "Verification successful",
            "data": {"id": 4099260516, "reference": reference, **charge},
        }


class FakeWidgetHandle:
    def __init__(self, widget):
        self.widget = widget

    def open_iframe(self):
        self.widget.opened += 1


class FakeWidget:
    """Hosted payment widget double: records setup() configs and fires callbacks on demand."""

    def __init__(self, paystack=None):
        self.paystack = paystack
        self.configs = []
        self.opened = 0

    def setup(self, config):
        self.configs.append(config)
        return FakeWidgetHandle(self)

    @property
    def last_config(self):
        return self.configs[-1]

    def pay(self, amount=None):
        config = self.last_config
        if self.paystack is not None:
            paid = config["amount"] if amount is None else amount
            self.paystack.record_charge(config["ref"], paid, config["currency"])
        config["callback"]({"reference": config["ref"], "status": "success"})

    def close(self):
        self.last_config["onClose"]()


class RecordingNotifier(Notifier):
    def __init__(self):
        self.messages = []

    def notify(self, level, message):
        self.messages.append((level, message))

    def at(self, level):
        return [message for lvl, message in self.messages if lvl == level]


def make_settings(**overrides):
    values = {
        "API_BASE_URL": "http://testserver",
        "PAYSTACK_PUBLIC_KEY": "pk_test_local",
        "CURRENCY": "GHS",
        "READ_RETRIES": 2,
        "RETRY_BACKOFF_SECONDS": 0,
    }
    values.update(overrides)
    return StorefrontSettings(**values)


def make_session(transport, token="test-token", widget=None, notifier=None, on_unauthorized=None, **settings):
    return StorefrontSession(
        token,
        make_settings(**settings),
        transport=transport,
        widget_loader=static_loader(widget) if widget is not None else None,
        notifier=notifier or RecordingNotifier(),
        on_unauthorized=on_unauthorized,
    )
