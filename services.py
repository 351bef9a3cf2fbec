"""
Domain operations: profile, challenge lifecycle, rewards, support and admin
review.

Every function works on one freshly loaded document. Mutations run inside
``store.mutate()`` so they are persisted on success and dropped when a
precondition fails. Return values are raw stored dicts; callers project them
to a locale.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from auth import find_user_by_username, public_user
from database import JsonStore, create_document, find_document, get_documents
from errors import Conflict, InsufficientBalance, InvalidInput, InvalidState, NotFound
from schemas import Challenge, FaqItem, Localized, Redemption, Reward, Submission, SupportTicket, now_iso

logger = logging.getLogger(__name__)

CATALOG_COLLECTIONS = ("challenges", "rewards", "faq")
ADMIN_USERNAME = "Admin"


def _get_user(document: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    user = find_document(document, "users", id=user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def _created_at(ticket: Dict[str, Any]) -> datetime:
    raw = ticket.get("createdAt") or ""
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_text(value: Optional[str], message: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInput(message)
    return text


# Profile

def get_profile(store: JsonStore, user_id: str) -> Dict[str, Any]:
    return public_user(_get_user(store.load(), user_id))


def update_profile(
    store: JsonStore,
    user_id: str,
    bio: Optional[str] = None,
    username: Optional[str] = None,
    picture_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Apply any of bio, username and picture URL in one write. Returns the
    user and the picture URL that was replaced, if any.
    """
    if bio is None and username is None and picture_url is None:
        return {"user": get_profile(store, user_id), "previousUrl": None}

    previous_url = None
    with store.mutate() as document:
        user = _get_user(document, user_id)
        if username is not None:
            username = _require_text(username, "Username cannot be empty")
            other = find_user_by_username(document, username)
            if other is not None and other["id"] != user_id:
                raise Conflict("Username already taken")
            user["username"] = username
        if bio is not None:
            user["bio"] = bio
        if picture_url is not None:
            previous_url = user.get("profilePictureUrl")
            user["profilePictureUrl"] = picture_url

    logger.info("Updated profile of user %s", user_id)
    return {"user": public_user(user), "previousUrl": previous_url}


# Catalog

def list_catalog(store: JsonStore, collection: str) -> List[Dict[str, Any]]:
    if collection not in CATALOG_COLLECTIONS:
        raise NotFound(f"Unknown catalog {collection}")
    return store.load()[collection]


# Challenge lifecycle

def join_challenge(store: JsonStore, user_id: str, challenge_id: Optional[str]) -> Dict[str, Any]:
    if not challenge_id:
        raise InvalidInput("challengeId is required")

    with store.mutate() as document:
        user = _get_user(document, user_id)
        challenge = find_document(document, "challenges", id=challenge_id)
        if challenge is None:
            raise NotFound("Challenge not found")
        if user.get("activeChallenge"):
            raise Conflict("You already have an active challenge")

        user["activeChallenge"] = {**challenge, "startedAt": now_iso()}

    logger.info("User %s started challenge %s", user_id, challenge_id)
    return user["activeChallenge"]


def cancel_challenge(store: JsonStore, user_id: str) -> None:
    with store.mutate() as document:
        user = _get_user(document, user_id)
        if not user.get("activeChallenge"):
            raise InvalidState("No active challenge")
        challenge_id = user["activeChallenge"].get("id")
        user["activeChallenge"] = None

    logger.info("User %s cancelled challenge %s", user_id, challenge_id)


def submit_challenge(
    store: JsonStore, user_id: str, image_url: str, challenge_id: Optional[str] = None
) -> Dict[str, Any]:
    with store.mutate() as document:
        user = _get_user(document, user_id)
        active = user.get("activeChallenge")
        if not active:
            raise InvalidState("No active challenge")
        if challenge_id and challenge_id != active.get("id"):
            raise InvalidInput("Submitted challenge is not the active challenge")

        name = active.get("name")
        submission = create_document(
            document,
            "submissions",
            Submission(
                user_id=user["id"],
                username=user["username"],
                challenge_name=name.get("ar") if isinstance(name, dict) else name,
                challenge=active,
                image_url=image_url,
            ),
        )
        user["activeChallenge"] = None

    logger.info("User %s submitted challenge %s as %s", user_id, active.get("id"), submission["id"])
    return submission


# Rewards

def redeem_reward(store: JsonStore, user_id: str, reward_id: Optional[str]) -> Dict[str, Any]:
    if not reward_id:
        raise InvalidInput("rewardId is required")

    with store.mutate() as document:
        user = _get_user(document, user_id)
        reward = find_document(document, "rewards", id=reward_id)
        if reward is None:
            raise NotFound("Reward not found")

        cost = int(reward.get("cost", 0))
        if user.get("points", 0) < cost:
            raise InsufficientBalance()

        redemption = Redemption(
            id=reward_id,
            qr_code_data=f"REWARD-{reward_id}-USER-{user['id']}-{int(time.time() * 1000)}",
        ).model_dump(by_alias=True)
        user["points"] = user.get("points", 0) - cost
        user.setdefault("redeemedRewards", []).append(redemption)

    logger.info("User %s redeemed reward %s for %d points", user_id, reward_id, cost)
    return {
        "qrCode": redemption["qrCodeData"],
        "redemption": redemption,
        "remainingPoints": user["points"],
    }


# Support

def post_support_message(store: JsonStore, user_id: str, message: Optional[str]) -> Dict[str, Any]:
    text = _require_text(message, "Message is required")
    with store.mutate() as document:
        user = _get_user(document, user_id)
        ticket = create_document(
            document,
            "supportTickets",
            SupportTicket(user_id=user["id"], username=user["username"], message=text),
        )

    logger.info("User %s opened support ticket %s", user_id, ticket["id"])
    return ticket


def list_user_tickets(store: JsonStore, user_id: str) -> List[Dict[str, Any]]:
    tickets = get_documents(store.load(), "supportTickets", {"userId": user_id})
    return sorted(tickets, key=_created_at)


def reply_to_user(store: JsonStore, user_id: Optional[str], message: Optional[str]) -> Dict[str, Any]:
    text = _require_text(message, "Message is required")
    with store.mutate() as document:
        if not user_id:
            raise NotFound("User not found")
        _get_user(document, user_id)
        # Admin replies are created already read.
        ticket = create_document(
            document,
            "supportTickets",
            SupportTicket(user_id=user_id, username=ADMIN_USERNAME, message=text, sender="admin", status="read"),
        )

    logger.info("Admin replied to user %s", user_id)
    return ticket


def mark_tickets_read(store: JsonStore, ticket_ids: Any) -> int:
    if not isinstance(ticket_ids, list):
        raise InvalidInput("ticketIds must be a list")

    wanted = set(str(ticket_id) for ticket_id in ticket_ids)
    if not any(ticket.get("id") in wanted for ticket in store.load()["supportTickets"]):
        return 0

    updated = 0
    with store.mutate() as document:
        for ticket in document["supportTickets"]:
            if ticket.get("id") in wanted:
                ticket["status"] = "read"
                updated += 1

    logger.info("Marked %d of %d tickets as read", updated, len(wanted))
    return updated


# Admin review

def list_submissions_grouped(store: JsonStore) -> Dict[str, List[Dict[str, Any]]]:
    submissions = store.load()["submissions"]
    return {
        status: [s for s in submissions if s.get("status") == status]
        for status in ("pending", "approved", "rejected")
    }


def _pending_submission(document: Dict[str, Any], submission_id: str) -> Dict[str, Any]:
    submission = find_document(document, "submissions", id=submission_id)
    if submission is None:
        raise NotFound("Submission not found")
    if submission.get("status") != "pending":
        raise InvalidState(f"Submission already {submission.get('status')}")
    return submission


def approve_submission(store: JsonStore, submission_id: str) -> Dict[str, Any]:
    with store.mutate() as document:
        submission = _pending_submission(document, submission_id)
        challenge = submission.get("challenge") or {}
        points = int(challenge.get("reward", 0))

        user = find_document(document, "users", id=submission.get("userId"))
        if user is not None:
            user["points"] = user.get("points", 0) + points
            completed = user.setdefault("completedChallenges", [])
            if challenge.get("id") and challenge["id"] not in completed:
                completed.append(challenge["id"])
        else:
            logger.warning("Approving submission %s for missing user %s", submission_id, submission.get("userId"))

        submission["status"] = "approved"
        submission["processedAt"] = now_iso()
        submission["pointsAwarded"] = points

    logger.info("Approved submission %s, awarded %d points", submission_id, points)
    return submission


def reject_submission(store: JsonStore, submission_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
    with store.mutate() as document:
        submission = _pending_submission(document, submission_id)
        submission["status"] = "rejected"
        submission["processedAt"] = now_iso()
        submission["rejectionReason"] = reason

    logger.info("Rejected submission %s", submission_id)
    return submission


def list_users_with_unread(store: JsonStore) -> List[Dict[str, Any]]:
    document = store.load()
    unread: Dict[str, int] = {}
    for ticket in document["supportTickets"]:
        if ticket.get("status") == "unread" and ticket.get("sender") == "user":
            unread[ticket.get("userId")] = unread.get(ticket.get("userId"), 0) + 1

    return [
        {**public_user(user), "unreadMessages": unread.get(user.get("id"), 0)}
        for user in document["users"]
    ]


def get_user_detail(store: JsonStore, user_id: str) -> Dict[str, Any]:
    document = store.load()
    user = _get_user(document, user_id)
    return {
        **public_user(user),
        "submissions": get_documents(document, "submissions", {"userId": user_id}),
    }


# Seed a starter catalog into empty collections

DEFAULT_CHALLENGES = [
    Challenge(
        name=Localized(ar="المشي ١٠ آلاف خطوة", en="Walk 10,000 steps"),
        description=Localized(ar="امشِ ١٠ آلاف خطوة في يوم واحد.", en="Walk 10,000 steps in a single day."),
        reward=100,
    ),
    Challenge(
        name=Localized(ar="اشرب ٨ أكواب ماء", en="Drink 8 glasses of water"),
        description=Localized(ar="اشرب ٨ أكواب من الماء اليوم.", en="Drink 8 glasses of water today."),
        reward=50,
    ),
    Challenge(
        name=Localized(ar="تمرين ٣٠ دقيقة", en="30-minute workout"),
        description=Localized(ar="أكمل تمرينًا لمدة ٣٠ دقيقة.", en="Complete a 30-minute workout."),
        reward=150,
    ),
]

DEFAULT_REWARDS = [
    Reward(name=Localized(ar="قهوة مجانية", en="Free coffee"), cost=200),
    Reward(name=Localized(ar="خصم ٢٠٪ على الاشتراك", en="20% off membership"), cost=500),
]

DEFAULT_FAQ = [
    FaqItem(
        question=Localized(ar="كيف أكسب النقاط؟", en="How do I earn points?"),
        answer=Localized(
            ar="ابدأ تحديًا وأرسل صورة الإثبات، وستضاف النقاط بعد الموافقة.",
            en="Start a challenge and submit a proof photo; points are added once it is approved.",
        ),
    ),
]


def seed_defaults(store: JsonStore) -> Dict[str, Any]:
    defaults = {"challenges": DEFAULT_CHALLENGES, "rewards": DEFAULT_REWARDS, "faq": DEFAULT_FAQ}
    seeded: List[str] = []
    current = store.load()
    if all(current[collection] for collection in defaults):
        counts = {collection: len(current[collection]) for collection in defaults}
        return {"status": "ok", "seeded": False, "counts": counts}

    with store.mutate() as document:
        for collection, items in defaults.items():
            if document[collection]:
                continue
            for item in items:
                create_document(document, collection, item)
            seeded.append(collection)
        counts = {collection: len(document[collection]) for collection in defaults}

    if seeded:
        logger.info("Seeded default %s", ", ".join(seeded))
    return {"status": "ok", "seeded": bool(seeded), "counts": counts}
