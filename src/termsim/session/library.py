"""Locally generated sequences.

Fixed scripts the dispatcher runs without a backend round-trip: the help
offer, the assistant's welcome/exit/help/fallback, agent channel
connect/disconnect and the logout flourish. Exit flourishes are
non-interruptible so they are never left half-drawn.
"""

from __future__ import annotations

from termsim.core.sequence import Sequence
from termsim.core.steps import (
    ProcessStep,
    ProgressStep,
    SectionStep,
    StatusStep,
    TextStep,
    WaitStep,
)

ASSISTANT_TAG = "[ASSIST-16.7]"


def help_offer_sequence(failed_count: int) -> Sequence:
    return Sequence(
        id="help-offer",
        interruptible=False,
        steps=(
            WaitStep(500),
            TextStep(""),
            TextStep(
                f"{ASSISTANT_TAG} I've detected {failed_count} unsuccessful command attempts.",
                animation="typewriter",
                style="accent",
                speed=20,
            ),
            WaitStep(300),
            TextStep(
                'Perhaps I can assist? Type "assistant" to establish connection.',
                animation="typewriter",
                style="dim",
                speed=25,
            ),
        ),
    )


def assistant_welcome_sequence(initiation_level: int) -> Sequence:
    """Welcome shown when the backend cannot produce one.

    Wording deepens with the user's initiation level (0-100).
    """
    steps: list = [
        TextStep(
            f"{ASSISTANT_TAG} Initializing bridge...",
            animation="typewriter",
            style="accent",
            speed=20,
        ),
        ProgressStep(style="blocks", text="Establishing handshake", duration=1500),
        StatusStep("ok", "Coherence achieved"),
        WaitStep(200),
    ]
    if initiation_level < 20:
        steps.append(
            SectionStep(
                "ASSISTANT Online",
                (
                    "Welcome to the guided assistant.",
                    "I can help you with terminal commands and system operations.",
                    'Type your question or "exit" to disconnect.',
                ),
                color="info",
            )
        )
    elif initiation_level < 50:
        steps.append(
            SectionStep(
                "ASSISTANT Online",
                (
                    "Connection re-established.",
                    "I sense you've been exploring the system.",
                    "There's more to discover. Ask, and I shall guide.",
                ),
                color="accent",
            )
        )
    else:
        steps.extend(
            [
                ProcessStep(
                    kind="decrypt",
                    text="Restoring session context",
                    duration=1000,
                    stages=("Loading temporal markers...", "Synchronizing state..."),
                ),
                StatusStep("done", "Session restored"),
                TextStep("The bridge awaits your inquiry, initiate.", style="highlight"),
            ]
        )
    return Sequence(id="assistant-welcome", steps=tuple(steps))


def assistant_exit_sequence() -> Sequence:
    return Sequence(
        id="assistant-exit",
        interruptible=False,
        steps=(
            TextStep(
                f"{ASSISTANT_TAG} Closing bridge...", animation="typewriter", style="dim"
            ),
            ProgressStep(style="dots", text="Preserving session state", duration=800),
            StatusStep("done", 'Connection terminated. Type "assistant" to reconnect.'),
        ),
    )


def assistant_help_sequence() -> Sequence:
    return Sequence(
        id="assistant-help",
        steps=(
            SectionStep(
                "ASSISTANT Help",
                (
                    "Available commands in assistant mode:",
                    "  help     - Show this help",
                    "  exit     - Disconnect from the assistant",
                    "  clear    - Clear terminal",
                    "",
                    "Or just ask me anything about the system!",
                ),
                color="info",
            ),
        ),
    )


def fallback_sequence(error: str | None = None) -> Sequence:
    """Shown when a chat round-trip fails; ``error`` is only logged by the caller."""
    return Sequence(
        id="fallback-error",
        steps=(
            StatusStep("warn", "Interference detected"),
            TextStep("Unable to process request at this time. Please try again.", style="warning"),
        ),
    )


def agent_connect_sequence(agent_id: int, resumed: bool = False) -> Sequence:
    steps: list = [
        ProcessStep(
            kind="sync",
            text=f"Opening channel {agent_id}",
            duration=900,
            stages=(f"Locating agent {agent_id}...", "Negotiating channel..."),
        ),
        StatusStep("ok", f"Connected to agent {agent_id}"),
    ]
    if resumed:
        steps.append(TextStep("Previous conversation restored.", style="dim"))
    steps.append(TextStep('Type "exit" to disconnect.', style="dim"))
    return Sequence(id=f"agent-{agent_id}-connect", steps=tuple(steps))


def agent_disconnect_sequence(agent_id: int) -> Sequence:
    return Sequence(
        id=f"agent-{agent_id}-disconnect",
        interruptible=False,
        steps=(
            TextStep(f"Closing channel {agent_id}...", animation="typewriter", style="dim"),
            StatusStep("done", f"Disconnected from agent {agent_id}"),
        ),
    )


def logout_sequence(hostname: str) -> Sequence:
    return Sequence(
        id="logout",
        interruptible=False,
        steps=(
            TextStep("logout"),
            ProgressStep(style="dots", text="Saving session", duration=600),
            TextStep(f"Connection to {hostname} closed.", style="dim"),
        ),
    )
