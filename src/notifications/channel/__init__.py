"""Channel adapter registry.

Hands out one adapter per channel type. The in-memory fake is the default;
a real provider adapter is installed with ``set_channel`` at startup.
"""

from notifications.channel.email_port import EmailPort

EMAIL = "email"

_channel_instances: dict[str, EmailPort] = {}


def get_channel(channel_type: str) -> EmailPort:
    """Return the configured adapter for ``channel_type`` (singleton per type)."""
    if channel_type not in _channel_instances:
        if channel_type == EMAIL:
            from notifications.channel.fake_email import FakeEmailAdapter

            _channel_instances[channel_type] = FakeEmailAdapter()
        else:
            raise ValueError(f"Unknown channel type: {channel_type}")

    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter: EmailPort) -> None:
    _channel_instances[channel_type] = adapter


def reset_channels():
    """Drop every adapter so the next lookup starts fresh (used by tests)."""
    _channel_instances.clear()
