import logging
import os
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, Header, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field

import auth
import services
from config import Settings
from database import JsonStore
from errors import Forbidden, InvalidInput, ServerError, ServiceError, Unauthenticated
from logging_config import setup_logging
from translator import project_collection, project_item, project_user, resolve_locale
from uploads import UPLOADS_ROUTE, delete_image, save_image

settings = Settings.from_env()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    current = app.state.settings
    app.state.store.initialize()
    os.makedirs(current.uploads_dir, exist_ok=True)
    if not current.admin_token:
        logger.warning("ADMIN_TOKEN not set, admin endpoints are open")
    logger.info("FitReward backend ready, data file %s", app.state.store.path)
    yield


app = FastAPI(title="FitReward API", lifespan=lifespan)
app.state.settings = settings
app.state.store = JsonStore(settings.data_file)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(
    f"/{UPLOADS_ROUTE}",
    StaticFiles(directory=settings.uploads_dir, check_dir=False),
    name=UPLOADS_ROUTE,
)


# Error handling
@app.exception_handler(ServiceError)
def handle_service_error(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": "Invalid input"})


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = ServerError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


# Dependencies
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> JsonStore:
    return request.app.state.store


def get_locale(accept_language: Optional[str] = Header(None)) -> str:
    return resolve_locale(accept_language)


def current_identity(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> Dict[str, str]:
    return auth.verify_token(settings, auth.bearer_token(authorization))


def require_admin(
    x_admin_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.admin_token:
        return
    if not x_admin_token:
        raise Unauthenticated("Admin token required")
    if not secrets.compare_digest(x_admin_token, settings.admin_token):
        raise Forbidden("Invalid admin token")


# Request bodies
class ApiRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(ApiRequest):
    username: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(ApiRequest):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileRequest(ApiRequest):
    bio: Optional[str] = None
    username: Optional[str] = None


class JoinRequest(ApiRequest):
    challenge_id: Optional[str] = Field(None, alias="challengeId")


class RedeemRequest(ApiRequest):
    reward_id: Optional[str] = Field(None, alias="rewardId")


class SupportRequest(ApiRequest):
    message: Optional[str] = None


class RejectRequest(ApiRequest):
    reason: Optional[str] = None


class ReplyRequest(ApiRequest):
    user_id: Optional[str] = Field(None, alias="userId")
    message: Optional[str] = None


class MarkReadRequest(ApiRequest):
    ticket_ids: Optional[List[str]] = Field(None, alias="ticketIds")


@app.get("/")
def read_root():
    return {"message": "FitReward Backend Ready"}


@app.get("/health")
def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server": "FitReward Backend",
    }


@app.post("/seed", dependencies=[Depends(require_admin)])
def seed(store: JsonStore = Depends(get_store)):
    return services.seed_defaults(store)


# Auth
@app.post("/api/login")
def login(
    payload: LoginRequest,
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    locale: str = Depends(get_locale),
):
    user, token = auth.login(store, settings, payload.username, payload.password)
    return {"user": project_user(user, locale), "token": token}


@app.post("/api/register", status_code=201)
def register(
    payload: RegisterRequest,
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    locale: str = Depends(get_locale),
):
    user, token = auth.register(store, settings, payload.username, payload.email, payload.password)
    return {"message": "Account created", "user": project_user(user, locale), "token": token}


# Profile
@app.get("/api/user")
@app.get("/api/profile")
def get_profile(
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
    locale: str = Depends(get_locale),
):
    return project_user(services.get_profile(store, identity["id"]), locale)


@app.put("/api/user/profile")
def update_profile(
    payload: ProfileRequest,
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
    locale: str = Depends(get_locale),
):
    result = services.update_profile(store, identity["id"], bio=payload.bio, username=payload.username)
    return project_user(result["user"], locale)


def _save_profile(
    store: JsonStore,
    settings: Settings,
    user_id: str,
    upload: Optional[UploadFile] = None,
    bio: Optional[str] = None,
    username: Optional[str] = None,
) -> Dict[str, Any]:
    # The image is validated and stored before the document is touched.
    url = save_image(upload, settings, "profilePicture") if upload is not None else None
    try:
        result = services.update_profile(store, user_id, bio=bio, username=username, picture_url=url)
    except ServiceError:
        delete_image(url, settings)
        raise
    delete_image(result["previousUrl"], settings)
    return result["user"]


@app.post("/api/user/profile-picture")
def upload_profile_picture(
    profile_picture: Optional[UploadFile] = File(None, alias="profilePicture"),
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    if profile_picture is None:
        raise InvalidInput("An image file is required")
    user = _save_profile(store, settings, identity["id"], upload=profile_picture)
    return {"message": "Picture uploaded", "profilePictureUrl": user["profilePictureUrl"]}


@app.post("/api/profile/update")
def update_profile_form(
    username: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    profile_picture: Optional[UploadFile] = File(None, alias="profilePicture"),
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    locale: str = Depends(get_locale),
):
    upload = profile_picture if profile_picture is not None and profile_picture.filename else None
    user = _save_profile(store, settings, identity["id"], upload=upload, bio=bio, username=username)
    return project_user(user, locale)


# Catalog
@app.get("/api/challenges")
def list_challenges(store: JsonStore = Depends(get_store), locale: str = Depends(get_locale)):
    return project_collection(services.list_catalog(store, "challenges"), locale)


@app.get("/api/rewards")
def list_rewards(store: JsonStore = Depends(get_store), locale: str = Depends(get_locale)):
    return project_collection(services.list_catalog(store, "rewards"), locale)


@app.get("/api/faq")
def list_faq(store: JsonStore = Depends(get_store), locale: str = Depends(get_locale)):
    return project_collection(services.list_catalog(store, "faq"), locale)


# Challenge lifecycle
def _start_challenge(store: JsonStore, user_id: str, challenge_id: Optional[str], locale: str):
    active = services.join_challenge(store, user_id, challenge_id)
    user = services.get_profile(store, user_id)
    return {
        "message": "Challenge started",
        "activeChallenge": project_item(active, locale),
        "user": project_user(user, locale),
    }


@app.post("/api/challenges/join")
def join_challenge(
    payload: JoinRequest,
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
    locale: str = Depends(get_locale),
):
    return _start_challenge(store, identity["id"], payload.challenge_id, locale)


@app.post("/api/challenges/{challenge_id}/start")
def start_challenge(
    challenge_id: str,
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
    locale: str = Depends(get_locale),
):
    return _start_challenge(store, identity["id"], challenge_id, locale)


@app.post("/api/challenges/cancel")
def cancel_challenge(
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
):
    services.cancel_challenge(store, identity["id"])
    return {"message": "Challenge cancelled"}


@app.post("/api/challenges/submit")
def submit_challenge(
    challenge_id: Optional[str] = Form(None, alias="challengeId"),
    completion_image: Optional[UploadFile] = File(None, alias="completionImage"),
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    image_url = save_image(completion_image, settings, "completionImage")
    try:
        submission = services.submit_challenge(store, identity["id"], image_url, challenge_id)
    except ServiceError:
        delete_image(image_url, settings)
        raise
    return {"message": "Submission sent for review", "submission": submission}


# Rewards
@app.post("/api/rewards/redeem")
def redeem_reward(
    payload: RedeemRequest,
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
):
    result = services.redeem_reward(store, identity["id"], payload.reward_id)
    return {"message": "Reward redeemed", **result}


@app.post("/api/rewards/{reward_id}/redeem")
def redeem_reward_by_id(
    reward_id: str,
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
):
    result = services.redeem_reward(store, identity["id"], reward_id)
    return {"message": "Reward redeemed", **result}


# Support
@app.get("/api/support")
@app.get("/api/support/tickets")
def list_support_tickets(
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
):
    return services.list_user_tickets(store, identity["id"])


@app.post("/api/support")
@app.post("/api/support/tickets")
def post_support_message(
    payload: SupportRequest,
    identity: Dict[str, str] = Depends(current_identity),
    store: JsonStore = Depends(get_store),
):
    ticket = services.post_support_message(store, identity["id"], payload.message)
    return {"message": "Message sent", "ticket": ticket}


# Admin
admin_only = [Depends(require_admin)]


@app.get("/api/admin/submissions", dependencies=admin_only)
def admin_list_submissions(store: JsonStore = Depends(get_store)):
    return services.list_submissions_grouped(store)


@app.post("/api/admin/submissions/{submission_id}/approve", dependencies=admin_only)
def admin_approve_submission(submission_id: str, store: JsonStore = Depends(get_store)):
    submission = services.approve_submission(store, submission_id)
    return {"message": "Submission approved", "submission": submission}


@app.post("/api/admin/submissions/{submission_id}/reject", dependencies=admin_only)
def admin_reject_submission(
    submission_id: str,
    payload: Optional[RejectRequest] = None,
    store: JsonStore = Depends(get_store),
):
    reason = payload.reason if payload else None
    submission = services.reject_submission(store, submission_id, reason)
    return {"message": "Submission rejected", "submission": submission}


@app.get("/api/admin/users", dependencies=admin_only)
def admin_list_users(store: JsonStore = Depends(get_store)):
    return services.list_users_with_unread(store)


@app.get("/api/admin/users/{user_id}", dependencies=admin_only)
def admin_get_user(user_id: str, store: JsonStore = Depends(get_store)):
    return services.get_user_detail(store, user_id)


@app.get("/api/admin/tickets/user/{user_id}", dependencies=admin_only)
def admin_user_tickets(user_id: str, store: JsonStore = Depends(get_store)):
    return services.list_user_tickets(store, user_id)


@app.post("/api/admin/tickets/reply", dependencies=admin_only)
def admin_reply(payload: ReplyRequest, store: JsonStore = Depends(get_store)):
    ticket = services.reply_to_user(store, payload.user_id, payload.message)
    return {"message": "Reply sent", "ticket": ticket}


@app.post("/api/admin/tickets/read", dependencies=admin_only)
def admin_mark_read(payload: MarkReadRequest, store: JsonStore = Depends(get_store)):
    updated = services.mark_tickets_read(store, payload.ticket_ids)
    return {"message": "Tickets updated", "updated": updated}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
