from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import httpx
import typer

app = typer.Typer(help="Character creation wizard CLI")

DEFAULT_BACKEND_URL = "http://127.0.0.1:8000"
API_PREFIX = "/api/v1"
STATE_PATH = Path(__file__).resolve().parent / ".state.json"
USER_HEADER = "X-User-Id"


def load_state(path: Path = STATE_PATH) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return {}


def save_state(data: dict[str, Any], path: Path = STATE_PATH) -> None:
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2))


def backend_url() -> str:
    return os.getenv("BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/")


def auth_headers() -> dict[str, str]:
    token = str(os.getenv("CHARWIZARD_TOKEN") or "").strip()
    if token:
        return {"Authorization": f"Bearer {token}"}
    user_id = str(os.getenv("CHARWIZARD_USER") or "").strip()
    if user_id:
        return {USER_HEADER: user_id}
    return {}


def request(
    method: str,
    endpoint: str,
    *,
    json_body: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
) -> httpx.Response:
    url = f"{backend_url()}{endpoint}"
    with httpx.Client(timeout=60.0) as client:
        return client.request(method, url, json=json_body, params=params, headers=auth_headers())


def response_detail_code(resp: httpx.Response) -> str | None:
    try:
        payload = resp.json()
    except ValueError:
        return None
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, dict):
        code = detail.get("code")
        if isinstance(code, str) and code.strip():
            return code.strip()
    return None


def pick_choice(choices: list[str], option: int) -> str:
    """1-based pick; out-of-range options clamp to the last choice."""
    if not choices:
        raise ValueError("no choices to pick from")
    index = min(max(1, int(option)), len(choices)) - 1
    return choices[index]


def _handle_response(resp: httpx.Response, action: str) -> dict[str, Any]:
    if resp.status_code >= 400:
        code = response_detail_code(resp) or "ERROR"
        typer.echo(f"{action} failed ({resp.status_code} {code}): {resp.text}")
        raise typer.Exit(code=1)
    try:
        return resp.json()
    except ValueError:
        typer.echo(resp.text)
        raise typer.Exit(code=1)


def _print_progress(body: dict[str, Any]) -> None:
    progress = body.get("progress") or {}
    typer.echo(
        f"progress: {progress.get('completed_count')}/{progress.get('total_count')} ({progress.get('progress')}%)"
    )


def _remember(current_field: str | None, character_data: dict[str, Any], choices: list[str] | None = None) -> None:
    state = load_state()
    state["current_field"] = current_field
    state["character_data"] = character_data
    state["choices"] = list(choices or [])
    save_state(state)


@app.command()
def ping() -> None:
    body = _handle_response(request("GET", "/health"), "ping")
    typer.echo(f"ok: {body}")


@app.command()
def start() -> None:
    body = _handle_response(request("POST", f"{API_PREFIX}/chat/start-character-creation"), "start")
    field = body.get("current_field") or {}
    _remember(field.get("key"), {})
    typer.echo(body.get("message"))
    typer.echo(f"next: {field.get('label')} ({field.get('key')})")


@app.command()
def choices(field: str | None = typer.Option(default=None, help="Field key; defaults to the saved current field")) -> None:
    state = load_state()
    current_field = field or state.get("current_field")
    if not current_field:
        raise typer.BadParameter("No field given and no current field in client/.state.json")
    payload = {"current_field": current_field, "character_data": state.get("character_data") or {}}
    body = _handle_response(request("POST", f"{API_PREFIX}/chat/get-choices", json_body=payload), "choices")
    options = list(body.get("choices") or [])
    _remember(current_field, state.get("character_data") or {}, options)
    label = (body.get("field") or {}).get("label")
    typer.echo(f"{label} ({current_field}):")
    for index, option in enumerate(options, start=1):
        typer.echo(f"  {index}. {option}")
    if body.get("comment"):
        typer.echo(body["comment"])
    usage = body.get("usage") or {}
    typer.echo(f"usage: {usage.get('used')}/{usage.get('limit')}")


def _select(value: str, *, current_field: str, character_data: dict[str, Any]) -> dict[str, Any]:
    payload = {"current_field": current_field, "selected_choice": value, "character_data": character_data}
    body = _handle_response(request("POST", f"{API_PREFIX}/chat/select-choice", json_body=payload), "select")
    _remember(body.get("next_field"), body.get("character_data") or {})
    typer.echo(body.get("message"))
    _print_progress(body)
    return body


@app.command()
def select(
    value: str | None = typer.Argument(default=None, help="Free-text value to accept"),
    option: int | None = typer.Option(None, "--option", "-o", help="1-based index into the last choices"),
) -> None:
    state = load_state()
    current_field = state.get("current_field")
    if not current_field:
        raise typer.BadParameter("No current field in client/.state.json; run `start` first")
    if value is None:
        if option is None:
            raise typer.BadParameter("Provide a value or --option")
        try:
            value = pick_choice(list(state.get("choices") or []), option)
        except ValueError as exc:
            raise typer.BadParameter("No saved choices; run `choices` first") from exc
    body = _select(value, current_field=current_field, character_data=state.get("character_data") or {})
    if body.get("completed"):
        typer.echo(f"character_id: {body.get('character_id')}")


@app.command()
def session() -> None:
    body = _handle_response(request("GET", f"{API_PREFIX}/chat/session"), "session")
    if not body.get("has_session"):
        typer.echo(body.get("message"))
        return
    data = body.get("session") or {}
    typer.echo(f"current_field: {data.get('current_field')}")
    typer.echo(f"current_step: {data.get('current_step')}")
    _print_progress(body)
    for key, value in (data.get("character_data") or {}).items():
        typer.echo(f"  {key}: {value}")


@app.command()
def reset() -> None:
    body = _handle_response(request("DELETE", f"{API_PREFIX}/chat/session"), "reset")
    save_state({})
    typer.echo(body.get("message"))


@app.command()
def usage() -> None:
    body = _handle_response(request("GET", f"{API_PREFIX}/chat/usage"), "usage")
    info = body.get("usage") or {}
    typer.echo(f"{body.get('usage_date')}: {info.get('used')}/{info.get('limit')} (remaining {info.get('remaining')})")


@app.command()
def walk(option: int = typer.Option(default=1, help="1-based option to pick for every field")) -> None:
    """Start a session and accept option N for every field until the character is finished."""
    start()
    while True:
        state = load_state()
        current_field = state.get("current_field")
        if not current_field:
            break
        character_data = state.get("character_data") or {}
        payload = {"current_field": current_field, "character_data": character_data}
        proposal = _handle_response(request("POST", f"{API_PREFIX}/chat/get-choices", json_body=payload), "choices")
        options = list(proposal.get("choices") or [])
        if not options:
            typer.echo(f"no choices returned for {current_field}")
            raise typer.Exit(code=1)
        value = pick_choice(options, option)
        typer.echo(f"{current_field} -> {value}")
        body = _select(value, current_field=current_field, character_data=character_data)
        if body.get("completed"):
            typer.echo(f"character_id: {body.get('character_id')}")
            break


@app.command()
def characters(limit: int = typer.Option(default=20)) -> None:
    body = _handle_response(request("GET", f"{API_PREFIX}/characters", params={"limit": limit}), "characters")
    typer.echo(f"total: {body.get('total')}")
    for item in body.get("characters") or []:
        typer.echo(f"  #{item.get('id')} {item.get('name')} ({item.get('created_at')})")


if __name__ == "__main__":
    app()
