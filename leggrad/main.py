from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from typing import Dict, Optional, Set
import json
import asyncio
import logging
from pathlib import Path
from datetime import datetime

from leggrad.config import Settings
from leggrad.enums import RoomStatus
from leggrad.services.game_manager import GameManager
from leggrad.services.game_state import GameState
from leggrad.services.room_store import RoomRecord
from leggrad.tafl.variant import VARIANTS

settings = Settings.from_env()

# ============================================================================
# LOGGING SETUP
# ============================================================================

log_dir = Path(settings.log_dir)
log_dir.mkdir(parents=True, exist_ok=True)

log_filename = log_dir / f"server_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    handlers=[
        logging.FileHandler(log_filename),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)
logger.info("="*60)
logger.info("LEGGRAD SERVER STARTING")
logger.info("="*60)

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI()

game_manager = GameManager(max_rooms=settings.max_rooms)

# ============================================================================
# CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, client_id: str):
        await websocket.accept()
        self.active_connections[client_id] = websocket
        logger.info(f"Client connected: {client_id} | Total connections: {len(self.active_connections)}")

    def disconnect(self, client_id: str, websocket: WebSocket) -> bool:
        """Forget the client's socket. Returns False if a newer socket has taken its place."""
        if self.active_connections.get(client_id) is not websocket:
            logger.info(f"Stale socket closed for {client_id}, a newer connection is active")
            return False
        del self.active_connections[client_id]
        logger.info(f"Client disconnected: {client_id} | Total connections: {len(self.active_connections)}")
        return True

    async def send_personal_message(self, message: dict, client_id: str):
        if client_id in self.active_connections:
            websocket = self.active_connections[client_id]
            try:
                await websocket.send_json(message)
                logger.info(f"Sent to {client_id}: {message['type']}")
            except Exception as e:
                logger.error(f"Error sending to {client_id}: {e}", exc_info=True)
        else:
            logger.warning(f"Cannot send to {client_id}: not in active connections")

    async def broadcast_room(self, record: RoomRecord):
        """Send the room's committed snapshot to everyone seated in it, each from their own side"""
        game = GameState.from_dict(record.snapshot)
        message_type = "game_over" if record.status in (RoomStatus.FINISHED, RoomStatus.ABORTED) else "game_update"
        for player_id in (record.host_id, record.guest_id):
            if player_id is None:
                continue
            message = {
                "type": message_type,
                "room_id": record.room_id,
                "status": record.status.value,
                "game_state": game.to_dict(player_id),
            }
            if message_type == "game_over":
                message["winner"] = game.winner.value if game.winner else None
                message["reason"] = game.win_reason.value if game.win_reason else record.status.value
                message["message"] = game.message
            await self.send_personal_message(message, player_id)
        logger.info(f"Broadcast to room {record.room_id}: {message_type} (version {record.version})")

manager = ConnectionManager()

# Keeps scheduled broadcasts referenced until they finish
background_tasks: Set[asyncio.Task] = set()

def on_room_change(record: RoomRecord):
    """Store subscriber: push every committed change out to the room's players"""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning(f"No event loop to broadcast room {record.room_id}")
        return
    task = loop.create_task(manager.broadcast_room(record))
    background_tasks.add(task)
    task.add_done_callback(background_tasks.discard)

# ============================================================================
# HTTP ENDPOINTS
# ============================================================================

@app.get("/status")
async def status():
    """Get server status"""
    stats = game_manager.get_stats()
    return {
        "connections": len(manager.active_connections),
        "waiting_rooms": stats["waiting_rooms"],
        "active_games": stats["active_games"],
        "total_rooms": stats["total_rooms"],
        "finished_games": stats["finished_games"],
        "max_rooms": stats["max_rooms"],
    }

@app.get("/variants")
async def variants():
    """List the rule variants a room can be opened with"""
    return {
        "default": settings.default_variant,
        "variants": [variant.to_dict() for variant in VARIANTS.values()],
    }

@app.get("/game/{room_id}")
async def get_game_state(room_id: str, player_id: Optional[str] = None):
    """Get the state of a specific room"""
    record = game_manager.get_room(room_id)
    if not record:
        logger.warning(f"Game state request for nonexistent room: {room_id}")
        return {"error": "Game not found"}

    game = GameState.from_dict(record.snapshot)
    logger.info(f"Game state requested: {record.room_id} by {player_id if player_id else 'anonymous'}")
    return {
        "success": True,
        "room": record.to_dict(),
        "game_state": game.to_dict(player_id) if player_id else game.to_dict(),
    }

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

async def send_error(client_id: str, message: str):
    await manager.send_personal_message({"type": "error", "message": message}, client_id)

async def send_selection(client_id: str, room_id: str, success: bool, msg: str, game: GameState):
    """The clicking player's own selection; never broadcast"""
    await manager.send_personal_message({
        "type": "selection",
        "room_id": room_id,
        "success": success,
        "message": msg,
        "selection": game.selection_dict(),
    }, client_id)

async def handle_message(client_id: str, message: dict):
    message_type = message.get("type")
    room_id = message.get("room", "")
    logger.info(f"Message from {client_id}: {message_type}")

    if message_type == "create_room":
        success, msg, game = game_manager.create_room(
            room_id,
            client_id,
            message.get("name", client_id),
            message.get("variant", settings.default_variant),
            bool(message.get("secure_throne", True)),
        )
        if not success:
            logger.warning(f"Room creation failed for {client_id}: {msg}")
            await send_error(client_id, msg)
            return
        game_manager.store.subscribe(game.game_id, on_room_change)
        await manager.send_personal_message({
            "type": "room_created",
            "room_id": game.game_id,
            "message": msg,
            "game_state": game.to_dict(client_id),
        }, client_id)

    elif message_type == "join_room":
        success, msg, game = game_manager.join_room(room_id, client_id, message.get("name", client_id))
        if not success:
            logger.warning(f"Join failed for {client_id}: {msg}")
            await send_error(client_id, msg)
            return
        logger.info(f"GAME STARTED: {game.game_id}")
        for player in game.players.values():
            await manager.send_personal_message({
                "type": "game_started",
                "room_id": game.game_id,
                "game_state": game.to_dict(player.id),
            }, player.id)

    elif message_type == "leave_room":
        success, msg, _ = game_manager.leave_room(room_id, client_id)
        if not success:
            await send_error(client_id, msg)

    elif message_type == "make_move":
        from_square = message.get("from", "")
        to_square = message.get("to", "")
        logger.info(f"Move attempt: {client_id} in {room_id}: {from_square} -> {to_square}")
        success, msg, _ = game_manager.make_move(room_id, client_id, from_square, to_square)
        if not success:
            logger.warning(f"Move failed: {msg}")
            await send_error(client_id, msg)

    elif message_type in ("select_square", "cancel_selection"):
        if message_type == "select_square":
            success, msg, game = game_manager.select_square(room_id, client_id, message.get("square", ""))
        else:
            success, msg, game = game_manager.cancel_selection(room_id, client_id)
        if game is None:
            await send_error(client_id, msg)
            return
        await send_selection(client_id, game.game_id, success, msg, game)

    elif message_type == "promotion_choice":
        success, msg, _ = game_manager.handle_promotion(room_id, client_id, bool(message.get("promote")))
        if not success:
            await send_error(client_id, msg)

    elif message_type == "select_reinforcement":
        success, msg, _ = game_manager.select_reinforcement(room_id, client_id, message.get("piece_id", ""))
        if not success:
            await send_error(client_id, msg)

    elif message_type == "place_reinforcement":
        success, msg, _ = game_manager.place_reinforcement(room_id, client_id, message.get("square", ""))
        if not success:
            await send_error(client_id, msg)

    elif message_type == "get_game_state":
        record = game_manager.get_room(room_id)
        if not record:
            logger.warning(f"Game state request for nonexistent room: {room_id}")
            await send_error(client_id, "Game not found")
            return
        game = GameState.from_dict(record.snapshot)
        await manager.send_personal_message({
            "type": "game_update",
            "room_id": record.room_id,
            "status": record.status.value,
            "game_state": game.to_dict(client_id),
        }, client_id)

    elif message_type == "ping":
        # Keep connection alive
        await manager.send_personal_message({"type": "pong"}, client_id)

    else:
        logger.warning(f"Unknown message type from {client_id}: {message_type}")
        await send_error(client_id, f"Unknown message type: {message_type}")

async def handle_disconnect(client_id: str, websocket: WebSocket):
    """A player dropping out of an open room counts as leaving it"""
    if not manager.disconnect(client_id, websocket):
        return
    record = game_manager.get_player_room(client_id)
    if record:
        success, msg, _ = game_manager.leave_room(record.room_id, client_id)
        logger.info(f"{client_id} dropped from room {record.room_id}: {msg}")

@app.websocket("/ws/{client_id}")
async def websocket_endpoint(websocket: WebSocket, client_id: str):
    await manager.connect(websocket, client_id)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Malformed message from {client_id}")
                await send_error(client_id, "Malformed message")
                continue
            if not isinstance(message, dict):
                logger.warning(f"Non-object message from {client_id}")
                await send_error(client_id, "Malformed message")
                continue

            message_type = message.get("type")
            try:
                await handle_message(client_id, message)
            except Exception as e:
                logger.error(f"Error handling {message_type} from {client_id}: {e}", exc_info=True)
                await send_error(client_id, f"Server error: {e}")
    except WebSocketDisconnect:
        await handle_disconnect(client_id, websocket)
        logger.info(f"Client disconnected normally: {client_id}")
    except Exception as e:
        logger.error(f"Error with client {client_id}: {e}", exc_info=True)
        await handle_disconnect(client_id, websocket)


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)
