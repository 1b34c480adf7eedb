"""Message bus client for delivering navigation commands."""

from shared.bus.publisher import NavCommandPublisher
