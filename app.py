import asyncio
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend import SessionRegistry
from constants import CORS_ORIGINS, CPU_SAMPLE_SECONDS, LOG_FILE, LOG_LEVEL, PURGE_INTERVAL_SECONDS, VERSION
from errors import AuthorizationError, MessageFormatError, UserError
from logging_config import get_logger, setup_logging
from messages import decode_frame
from routers.games import games_router
from routers.health import health_router

setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

SECRET_PREFIX = "Secret"


async def purge_rooms_periodically(registry: SessionRegistry, interval: float = PURGE_INTERVAL_SECONDS):
    """Drop a note in the logs and purge stale rooms every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        try:
            logger.info(f"I am alive: Roomcount:{registry.room_count}")
            purged = registry.purge_inactive_rooms()
            logger.info(f"Purged {purged} inactive rooms")
        except Exception as e:
            logger.error(f"Error purging rooms: {e}", exc_info=True)


async def sample_cpu_periodically(registry: SessionRegistry, interval: float = CPU_SAMPLE_SECONDS):
    while True:
        await asyncio.sleep(interval)
        try:
            registry.sample_cpu_usage()
        except Exception as e:
            logger.error(f"Error sampling CPU usage: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting party relay server v{VERSION}")
    registry = SessionRegistry()
    app.state.registry = registry
    background_tasks = [
        asyncio.create_task(purge_rooms_periodically(registry)),
        asyncio.create_task(sample_cpu_periodically(registry)),
    ]
    try:
        yield
    finally:
        for task in background_tasks:
            task.cancel()
        for task in background_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info(f"Shutting down with {registry.room_count} rooms")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(games_router)
app.include_router(health_router)

logger.info("FastAPI application initialized")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Request: {request.method}: {request.url.path}")
    if len(request.url.path) < 2:
        request.app.state.registry.report_request("ROOT")
    return await call_next(request)


@app.exception_handler(UserError)
async def user_error_handler(request: Request, exc: UserError):
    logger.warning(f"{request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"errorMessage": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors())
    logger.warning(f"{request.url.path} rejected: {problems}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errorMessage": problems})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    timecode = int(time.time() * 1000)
    label = request.url.path
    logger.error(f"Error at timecode {timecode} on {label}: {exc}", exc_info=exc)
    request.app.state.registry.report_error(label)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"errorMessage": f"There was a server error in {label}.  Reference timecode {timecode}"},
    )


async def reject(websocket: WebSocket, offered_protocol: Optional[str]):
    """Complete the upgrade, then close with a policy violation.

    Closing before accept would surface as an HTTP 403 and the client would
    never see the close code.
    """
    await websocket.accept(subprotocol=offered_protocol)
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)


@app.websocket("/talk/{room_id}/{personal_id}")
async def talk(websocket: WebSocket, room_id: str, personal_id: str):
    """Bind a connection to an endpoint and relay its frames.

    The endpoint's secret arrives as the first offered subprotocol,
    ``Secret<secret>``, since browsers cannot set other headers on a socket.
    """
    registry: SessionRegistry = websocket.app.state.registry

    protocols = websocket.scope.get("subprotocols") or []
    if not protocols:
        logger.info("Got socket connection with no protocol header")
        await reject(websocket, None)
        return
    if not protocols[0].startswith(SECRET_PREFIX):
        logger.info("Secret not provided as first protocol")
        await reject(websocket, protocols[0])
        return
    personal_secret = protocols[0][len(SECRET_PREFIX):]

    room = registry.get_room(room_id)
    if room is None or room.idle:
        logger.info(f"Socket request with ID {personal_id}: Non-existent room: {room_id}")
        await reject(websocket, protocols[0])
        return

    logger.info(f"New Socket Request with ID {personal_id} for room {room_id} ({room.game_name})")
    try:
        room.set_socket(personal_id, personal_secret, websocket)
    except UserError as e:
        registry.report_error("socket")
        logger.warning(f"Socket binding rejected: {e}")
        await reject(websocket, protocols[0])
        return

    try:
        await websocket.accept(subprotocol=protocols[0])
    except Exception as e:
        logger.warning(f"Could not accept socket for {personal_id} in room {room_id}: {e}")
        room.remove_socket(personal_id, websocket)
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"Socket for room {room_id} with ID {personal_id} closing because {message.get('code')}")
                break

            try:
                frame = decode_frame(message)
                registry.report_received_message(frame)
                await room.receive_message(personal_id, frame)
            except (MessageFormatError, AuthorizationError) as e:
                logger.error(f"Message parsing error from {personal_id} in room {room_id}: {e}")
                await websocket.close(code=status.WS_1003_UNSUPPORTED_DATA)
                break
    except Exception as e:
        registry.report_error("socket")
        logger.error(f"Socket message handler error for {personal_id} in room {room_id}: {e}", exc_info=True)
        try:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        except Exception as close_error:
            logger.debug(f"Error closing WebSocket: {close_error}")
    finally:
        room.remove_socket(personal_id, websocket)
