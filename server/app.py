"""Sanguo game server (FastAPI)."""
from __future__ import annotations
import time
import uuid
from dataclasses import asdict, dataclass, field

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from sanguo.commands import command_from_dict
from sanguo.game import Simulation

app = FastAPI(title="Sanguo", version="1.0.0")

# ── Data stores ──────────────────────────────────────────────────────────────

@dataclass
class GameInstance:
    id: str
    sim: Simulation
    tick_log: list[dict] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)

GAMES: dict[str, GameInstance] = {}


def get_game(game_id: str) -> GameInstance:
    gi = GAMES.get(game_id)
    if not gi:
        raise HTTPException(404, "Game not found")
    return gi


def require_ongoing(gi: GameInstance):
    if gi.sim.world.game.terminal:
        raise HTTPException(400, "Game over")

# ── Models ───────────────────────────────────────────────────────────────────

class CreateGameRequest(BaseModel):
    seed: int | None = None
    difficulty: str = "normal"
    player_faction_id: str = "shu"

class CommandRequest(BaseModel):
    type: str
    character_id: str
    target_city_id: str
    tactic: str | None = None
    target_character_id: str | None = None
    specialty: str | None = None
    role: str | None = None
    tech_id: str | None = None
    trade_city_id: str | None = None
    district: str | None = None
    target_faction_id: str | None = None
    demand_type: str | None = None
    amount: int | None = None
    unit_type: str | None = None
    path: str | None = None

class EventCardRequest(BaseModel):
    choice_index: int

class PredictRequest(BaseModel):
    attacker_ids: list[str]
    city_id: str
    trials: int = 200

# ── Endpoints ────────────────────────────────────────────────────────────────

@app.post("/games")
def create_game(req: CreateGameRequest):
    try:
        sim = Simulation.create(seed=req.seed, difficulty=req.difficulty,
                                player_faction_id=req.player_faction_id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    gid = str(uuid.uuid4())[:8]
    GAMES[gid] = GameInstance(id=gid, sim=sim)
    return {
        "game_id": gid,
        "player_faction_id": sim.player_faction_id,
        "difficulty": sim.balance.difficulty,
        "factions": [f["id"] for f in sim.get_factions()],
    }

@app.get("/games")
def list_games():
    return [{"game_id": gid, "tick": gi.sim.world.tick,
             "status": gi.sim.world.game.status.value,
             "player_faction_id": gi.sim.player_faction_id} for gid, gi in GAMES.items()]

@app.get("/games/{game_id}/state")
def get_state(game_id: str):
    gi = get_game(game_id)
    state = gi.sim.get_full_state()
    state["game_id"] = game_id
    return state

@app.get("/games/{game_id}/factions")
def get_factions(game_id: str):
    return get_game(game_id).sim.get_factions()

@app.post("/games/{game_id}/commands")
def queue_command(game_id: str, req: CommandRequest):
    gi = get_game(game_id)
    require_ongoing(gi)
    try:
        cmd = command_from_dict(req.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(400, str(e))
    gi.sim.queue_command(cmd)
    return {"queued": cmd.type, "queue_length": len(gi.sim.command_queue)}

@app.get("/games/{game_id}/commands")
def list_commands(game_id: str):
    return get_game(game_id).sim.get_command_queue()

@app.delete("/games/{game_id}/commands")
def clear_commands(game_id: str):
    gi = get_game(game_id)
    gi.sim.clear_command_queue()
    return {"ok": True}

@app.post("/games/{game_id}/advance")
def advance(game_id: str):
    gi = get_game(game_id)
    require_ongoing(gi)
    result = gi.sim.advance_day()
    gi.tick_log.append({"tick": result.tick, "summary": result.summary, "events": result.events})
    return asdict(result)

@app.get("/games/{game_id}/log")
def get_log(game_id: str, since: int = 0):
    """Per-tick event log, optionally only ticks after `since`."""
    return [entry for entry in get_game(game_id).tick_log if entry["tick"] > since]

@app.post("/games/{game_id}/event-card")
def resolve_event_card(game_id: str, req: EventCardRequest):
    gi = get_game(game_id)
    if gi.sim.world.pending_event_card is None:
        raise HTTPException(400, "No pending event card")
    card = gi.sim.world.pending_event_card
    if not 0 <= req.choice_index < len(card.choices):
        raise HTTPException(400, "Invalid choice")
    return {"events": gi.sim.resolve_event_card(req.choice_index)}

@app.post("/games/{game_id}/predict")
def predict(game_id: str, req: PredictRequest):
    gi = get_game(game_id)
    if req.city_id not in gi.sim.world.cities:
        raise HTTPException(404, "City not found")
    rate = gi.sim.predict_battle(req.attacker_ids, req.city_id, req.trials)
    return {"city_id": req.city_id, "attacker_ids": req.attacker_ids, "win_rate": rate}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
