import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request, Response, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

import auth
import connections
import database
import notifications
import posts
import users
from auth import get_current_user_id
from errors import DependencyError, SocialError
from presence import hub
from schemas import CommentCreate, LoginRequest, PostCreate, ProfileUpdate, SignupRequest
from settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database.ensure_indexes()
    yield


app = FastAPI(title="ProConnect API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SocialError)
async def social_error_handler(request: Request, exc: SocialError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.exception("%s %s storage failure", request.method, request.url.path)
    err = DependencyError(f"Storage error: {exc}")
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.get("/")
def read_root():
    return {"message": "ProConnect API is running"}


@app.get("/health")
def health():
    response = {
        "backend": "running",
        "database": "not configured",
        "database_name": None,
        "collections": [],
        "online_users": len(hub.online()),
    }
    if database.db is not None:
        response["database_name"] = database.db.name
        try:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "connected"
        except PyMongoError as e:
            response["database"] = f"error: {str(e)[:50]}"
    return response


# ----------------- Auth -----------------
def _set_session_cookie(response: Response, user_id: str) -> str:
    token = auth.create_token(user_id)
    response.set_cookie(
        key="token",
        value=token,
        httponly=True,
        max_age=settings.TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        samesite="none" if settings.COOKIE_SECURE else "lax",
        secure=settings.COOKIE_SECURE,
        path="/",
    )
    return token


@app.post("/api/auth/signup", status_code=201)
def signup(req: SignupRequest, response: Response):
    user = auth.sign_up(req.first_name, req.last_name, req.username, req.email, req.password)
    token = _set_session_cookie(response, user["id"])
    return {"user": user, "token": token}


@app.post("/api/auth/login")
def login(req: LoginRequest, response: Response):
    user = auth.log_in(req.email, req.password)
    token = _set_session_cookie(response, user["id"])
    return {"user": user, "token": token}


@app.get("/api/auth/logout")
def logout(response: Response):
    response.delete_cookie(
        key="token",
        httponly=True,
        samesite="none" if settings.COOKIE_SECURE else "lax",
        secure=settings.COOKIE_SECURE,
        path="/",
    )
    return {"message": "Logged out successfully"}


# ----------------- Users -----------------
@app.get("/api/user/currentuser")
def current_user(user_id: str = Depends(get_current_user_id)):
    return users.get_current_user(user_id)


@app.put("/api/user/updateprofile")
def update_profile(changes: ProfileUpdate, user_id: str = Depends(get_current_user_id)):
    return users.update_profile(user_id, changes)


@app.get("/api/user/profile/{username}")
def profile(username: str, user_id: str = Depends(get_current_user_id)):
    return users.get_profile(username)


@app.get("/api/user/search")
def search(query: Optional[str] = None, user_id: str = Depends(get_current_user_id)):
    return users.search_users(query or "")


@app.get("/api/user/suggestedusers")
def suggested(user_id: str = Depends(get_current_user_id)):
    return users.suggested_users(user_id)


# ----------------- Posts -----------------
@app.post("/api/post/create", status_code=201)
def create_post(post: PostCreate, user_id: str = Depends(get_current_user_id)):
    return posts.create_post(user_id, post.description, post.image)


@app.get("/api/post/getpost")
def get_posts(page: int = Query(0, ge=0), limit: Optional[int] = Query(None, ge=1, le=100),
              user_id: str = Depends(get_current_user_id)):
    return posts.list_feed(page, limit)


@app.post("/api/post/like/{post_id}")
def like_post(post_id: str, background_tasks: BackgroundTasks,
              user_id: str = Depends(get_current_user_id)):
    events = []
    likes = posts.toggle_like(post_id, user_id, events)
    background_tasks.add_task(hub.dispatch, events)
    return {"success": True, "likes": likes}


@app.post("/api/post/comment/{post_id}")
def comment_post(post_id: str, comment: CommentCreate, background_tasks: BackgroundTasks,
                 user_id: str = Depends(get_current_user_id)):
    events = []
    comments = posts.add_comment(post_id, user_id, comment.content, events)
    background_tasks.add_task(hub.dispatch, events)
    return {"postId": post_id, "comments": comments}


# ----------------- Connections -----------------
@app.post("/api/connection/send/{receiver_id}")
def send_connection(receiver_id: str, background_tasks: BackgroundTasks,
                    user_id: str = Depends(get_current_user_id)):
    events = []
    request = connections.send_request(user_id, receiver_id, events)
    background_tasks.add_task(hub.dispatch, events)
    return request


@app.put("/api/connection/accept/{connection_id}")
def accept_connection(connection_id: str, background_tasks: BackgroundTasks,
                      user_id: str = Depends(get_current_user_id)):
    events = []
    connections.accept_request(connection_id, user_id, events)
    background_tasks.add_task(hub.dispatch, events)
    return {"message": "Connection accepted"}


@app.put("/api/connection/reject/{connection_id}")
def reject_connection(connection_id: str, user_id: str = Depends(get_current_user_id)):
    connections.reject_request(connection_id, user_id)
    return {"message": "Connection rejected"}


@app.get("/api/connection/getstatus/{target_id}")
def connection_status(target_id: str, user_id: str = Depends(get_current_user_id)):
    return connections.get_status(user_id, target_id)


@app.delete("/api/connection/remove/{target_id}")
def remove_connection(target_id: str, background_tasks: BackgroundTasks,
                      user_id: str = Depends(get_current_user_id)):
    events = []
    connections.remove_connection(user_id, target_id, events)
    background_tasks.add_task(hub.dispatch, events)
    return {"message": "Connection removed successfully"}


@app.get("/api/connection/requests")
def connection_requests(user_id: str = Depends(get_current_user_id)):
    return connections.list_incoming_requests(user_id)


@app.get("/api/connection/")
def user_connections(user_id: str = Depends(get_current_user_id)):
    return connections.list_connections(user_id)


# ----------------- Notifications -----------------
@app.get("/api/notification/get")
def get_notifications(user_id: str = Depends(get_current_user_id)):
    return notifications.list_notifications(user_id)


@app.delete("/api/notification/deleteone/{notification_id}")
def delete_notification(notification_id: str, user_id: str = Depends(get_current_user_id)):
    notifications.delete_notification(user_id, notification_id)
    return {"message": "Notification deleted successfully"}


@app.delete("/api/notification/")
def clear_notifications(user_id: str = Depends(get_current_user_id)):
    notifications.clear_notifications(user_id)
    return {"message": "Notifications cleared successfully"}


# ----------------- Real-time channel -----------------
@app.websocket("/ws")
async def realtime(websocket: WebSocket):
    token = websocket.cookies.get("token") or websocket.query_params.get("token")
    user_id = auth.decode_token(token) if token else None
    if not user_id:
        await websocket.close(code=1008)
        return
    await websocket.accept()
    hub.register(user_id, websocket)
    await websocket.send_json({"event": "connected", "data": {"userId": user_id}})
    logger.info("ws: user %s connected", user_id)
    try:
        while True:
            # Clients only listen; text or binary frames they send are ignored.
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        hub.unregister(websocket)
        logger.info("ws: user %s disconnected", user_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
