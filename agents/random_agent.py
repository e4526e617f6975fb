"""Random agent that plays the player faction through the Sanguo API."""
import random
import sys

import httpx

ACTIONS = ["attack", "move", "reinforce", "develop", "train_unit", "spy", "propose_nap"]


def play_tick(client: httpx.Client, game_id: str, rng: random.Random) -> dict:
    """Read state, queue a few random commands, advance one tick."""
    resp = client.get(f"/games/{game_id}/state")
    if resp.status_code != 200:
        return {"error": resp.text}
    state = resp.json()
    if state["game"]["status"] != "ongoing":
        return {"done": True, "status": state["game"]}

    pid = state["player_faction_id"]
    cities = state["cities"]
    neighbors: dict[str, list[str]] = {}
    for road in state["roads"]:
        neighbors.setdefault(road["from_city"], []).append(road["to_city"])
        neighbors.setdefault(road["to_city"], []).append(road["from_city"])
    rivals = [f["id"] for f in state["factions"] if f["id"] != pid]

    for cid, char in state["characters"].items():
        if char["faction_id"] != pid or not char["alive"] or not char["city_id"]:
            continue
        if rng.random() < 0.5:
            continue  # idle this tick
        here = char["city_id"]
        action = rng.choice(ACTIONS)
        cmd = {"type": action, "character_id": cid, "target_city_id": here}
        if action in ("attack", "move"):
            options = [c for c in neighbors.get(here, [])
                       if (cities[c]["faction_id"] != pid) == (action == "attack")]
            if not options:
                continue
            cmd["target_city_id"] = rng.choice(options)
            if action == "attack":
                cmd["tactic"] = rng.choice(["aggressive", "balanced", "defensive"])
        elif action == "train_unit":
            cmd["unit_type"] = rng.choice(["infantry", "cavalry", "archers"])
        elif action == "spy":
            options = [c for c in neighbors.get(here, []) if cities[c]["faction_id"] not in (None, pid)]
            if not options:
                continue
            cmd["target_city_id"] = rng.choice(options)
        elif action == "propose_nap":
            if not rivals:
                continue
            cmd["target_faction_id"] = rng.choice(rivals)
        client.post(f"/games/{game_id}/commands", json=cmd)

    card = state.get("pending_event_card")
    if card:
        client.post(f"/games/{game_id}/event-card",
                    json={"choice_index": rng.randrange(len(card["choices"]))})

    resp = client.post(f"/games/{game_id}/advance")
    return resp.json()


def main(base_url: str = "http://localhost:8000", ticks: int = 100, seed: int = 42):
    rng = random.Random(seed)
    with httpx.Client(base_url=base_url, timeout=30) as client:
        game = client.post("/games", json={"seed": seed}).json()
        gid = game["game_id"]
        print(f"Game {gid} as {game['player_faction_id']}")
        for _ in range(ticks):
            result = play_tick(client, gid, rng)
            if result.get("done") or "error" in result:
                print(result)
                break
            print(f"T{result['tick']:3d} | {result['summary']}")
            for e in result["events"]:
                if "⚔️" in e or "💀" in e or "🏆" in e:
                    print(f"     {e}")


if __name__ == "__main__":
    main(*sys.argv[1:2])
