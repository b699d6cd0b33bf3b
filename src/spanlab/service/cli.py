"""CLI tool for querying the span service.

Usage:
    spanlab-query "35mm lens, golden hour light" --url http://localhost:8000
    spanlab-query "a woman walks in the rain" --no-open-vocab --json
"""

from __future__ import annotations

import json
import sys
from typing import Any

import click
import httpx


def _format_table(spans: list[dict[str, Any]]) -> str:
    if not spans:
        return "No spans found."

    lines = [
        "Start  End    Role                          Conf  Text",
        "-----  ---    ----                          ----  ----",
    ]
    for span in spans:
        text = span["text"]
        if len(text) > 40:
            text = text[:37] + "..."
        lines.append(
            f"{span['start']:<7}{span['end']:<7}{span['role']:<30}{span['confidence']:.2f}  {text}"
        )
    return "\n".join(lines)


@click.command()
@click.argument("text")
@click.option(
    "--url",
    default="http://localhost:8000",
    help="Service URL (default: http://localhost:8000)",
)
@click.option("--no-open-vocab", is_flag=True, help="Skip the open-vocabulary model")
@click.option("--no-actions", is_flag=True, help="Skip action phrase extraction")
@click.option("--no-lighting", is_flag=True, help="Skip lighting phrase extraction")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output raw JSON instead of formatted text",
)
def main(text: str, url: str, no_open_vocab: bool, no_actions: bool, no_lighting: bool, json_output: bool) -> None:
    """Extract spans from TEXT using a running span service."""
    payload: dict[str, Any] = {"text": text}
    if no_open_vocab:
        payload["use_open_vocabulary"] = False
    if no_actions:
        payload["use_action_heuristics"] = False
    if no_lighting:
        payload["use_lighting"] = False

    try:
        response = httpx.post(f"{url}/spans", json=payload, timeout=30)
        response.raise_for_status()
        data = response.json()
    except httpx.ConnectError:
        click.echo(f"Error: Could not connect to service at {url}", err=True)
        sys.exit(1)
    except httpx.TimeoutException:
        click.echo(f"Error: Request to {url} timed out", err=True)
        sys.exit(1)
    except httpx.HTTPStatusError as e:
        click.echo(f"Error: Service returned {e.response.status_code}: {e.response.text}", err=True)
        sys.exit(1)
    except json.JSONDecodeError:
        click.echo("Error: Invalid JSON response from service", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(_format_table(data.get("spans", [])))
    if data.get("needs_fallback"):
        reason = data.get("coverage", {}).get("reason", "")
        click.echo(f"\nFallback recommended: {reason}")


if __name__ == "__main__":
    main()
