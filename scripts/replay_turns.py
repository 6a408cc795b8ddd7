#!/usr/bin/env python3
"""Replay a list of caller utterances through the turn runtime, offline.

Usage:
    python scripts/replay_turns.py tenant.json utterances.json          # human-readable
    python scripts/replay_turns.py tenant.json utterances.json --raw    # raw JSON per turn
    python scripts/replay_turns.py tenant.json utterances.json --model  # use OPENAI_API_KEY

tenant.json is a runtime config as the backend serves it (scenarios,
variables, settings).  utterances.json is a JSON list of strings, or an
object with an "utterances" list.  No backend is contacted: scenario
queries, traces and vendor logs stay local.
"""

import argparse
import asyncio
import json
import os
import sys

from frontline.collaborators import InMemoryConfigProvider
from frontline.llm import LLMClient
from frontline.runtime import Brain1Runtime

COMPANY_ID = "replay"
CALL_ID = "replay-call"


def load_utterances(path: str) -> list[str]:
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("utterances", [])
    if not isinstance(data, list):
        raise ValueError("utterances file must hold a list or an object with an 'utterances' list")
    return [str(u) for u in data if str(u).strip()]


def format_turn(turn: int, utterance: str, result) -> str:
    """One block per turn: caller line, agent line, then route/action annotations."""
    lines = [f"{turn:>3}  Caller: {utterance}"]
    lines.append(f"     Agent:  {result.text}")
    notes = [f"route={result.route or '-'}", f"action={result.action.value}"]
    if result.bailout_triggered:
        notes.append(f"⚠ bailout={result.bailout_reason}")
    lines.append(f"     ┆ {' '.join(notes)}")
    return "\n".join(lines)


async def replay(tenant: dict, utterances: list[str], use_model: bool, raw: bool) -> int:
    llm = None
    if use_model:
        api_key = os.getenv("OPENAI_API_KEY", "")
        if not api_key:
            print("Error: --model needs OPENAI_API_KEY set", file=sys.stderr)
            return 1
        llm = LLMClient(api_key, model=os.getenv("LLM_MODEL", "") or "gpt-4o-mini")

    runtime = Brain1Runtime(InMemoryConfigProvider({COMPANY_ID: tenant}), llm=llm)
    state = None
    try:
        for turn, utterance in enumerate(utterances, start=1):
            result = await runtime.process_turn(COMPANY_ID, CALL_ID, utterance, state)
            state = result.call_state
            if raw:
                print(json.dumps(result.to_dict(), indent=2, default=str))
            else:
                print(format_turn(turn, utterance, result))
            if result.should_hangup or result.should_transfer:
                break
    finally:
        await runtime.drain()
        if llm is not None:
            await llm.close()

    if state is not None and not raw:
        print(f"\n☎ {state.turn_count} turn(s), booking_state={state.booking_state or '-'}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Replay caller utterances through the turn runtime")
    parser.add_argument("tenant", help="Path to tenant runtime config JSON")
    parser.add_argument("utterances", help="Path to utterances JSON")
    parser.add_argument("--raw", action="store_true", help="Output raw JSON per turn")
    parser.add_argument("--model", action="store_true", help="Call the language model (needs OPENAI_API_KEY)")
    args = parser.parse_args()

    try:
        with open(args.tenant) as f:
            tenant = json.load(f)
        utterances = load_utterances(args.utterances)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not utterances:
        print("No utterances to replay.", file=sys.stderr)
        sys.exit(1)

    sys.exit(asyncio.run(replay(tenant, utterances, args.model, args.raw)))


if __name__ == "__main__":
    main()
