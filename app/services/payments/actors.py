"""
Who recorded a payment posting.

A posting is attributed either to a person (HumanActor) or to the system
(SYSTEM, used for remittance auto-posting). The database stores the tag and
the optional user id in two columns; these helpers are the only place that
translates between the two representations.
"""
from dataclasses import dataclass
from typing import Union

from app.models.enums import ActorType, PaymentMethod


@dataclass(frozen=True)
class HumanActor:
    user_id: int


@dataclass(frozen=True)
class SystemActor:
    pass


SYSTEM = SystemActor()

Actor = Union[HumanActor, SystemActor]


def actor_columns(actor: Actor) -> dict:
    """Column values for a PaymentPosting recorded by ``actor``."""
    if isinstance(actor, HumanActor):
        return {"actor_type": ActorType.HUMAN, "posted_by": actor.user_id}
    return {"actor_type": ActorType.SYSTEM, "posted_by": None}


def actor_of(posting) -> Actor:
    """Read the actor back from a stored PaymentPosting."""
    if posting.actor_type == ActorType.HUMAN:
        return HumanActor(user_id=posting.posted_by)
    return SYSTEM


def is_immutable(posting) -> bool:
    """ERA postings made by the system cannot be edited or deleted."""
    return posting.payment_method == PaymentMethod.ERA and isinstance(actor_of(posting), SystemActor)
