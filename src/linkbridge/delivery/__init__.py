"""Outbound document delivery."""

from linkbridge.delivery.queue import DeliveryQueue
from linkbridge.delivery.types import DeliveryTask, DrainResult, normalize_recipient

__all__ = ["DeliveryQueue", "DeliveryTask", "DrainResult", "normalize_recipient"]
