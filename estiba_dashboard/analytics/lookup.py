from dataclasses import dataclass, field
from typing import Dict, Iterable, Set
from estiba_dashboard.models.rows import SubscriptionRecord, UserRecord

ACTIVE_STATUS = "active"


@dataclass
class Lookup:
    users_by_chapa: Dict[str, UserRecord] = field(default_factory=dict)
    premium_chapas: Set[str] = field(default_factory=set)

    def is_premium(self, chapa: str) -> bool:
        return chapa in self.premium_chapas


def build_user_index(users: Iterable[UserRecord]) -> Dict[str, UserRecord]:
    index = {}
    for user in users:
        if user.chapa:
            index[user.chapa] = user
    return index


def build_premium_set(subscriptions: Iterable[SubscriptionRecord]) -> Set[str]:
    return {s.chapa for s in subscriptions if s.chapa and s.status == ACTIVE_STATUS}


def build_lookup(users: Iterable[UserRecord], subscriptions: Iterable[SubscriptionRecord]) -> Lookup:
    return Lookup(
        users_by_chapa=build_user_index(users),
        premium_chapas=build_premium_set(subscriptions),
    )
