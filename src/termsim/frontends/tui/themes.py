"""Pluggable theme system for the terminal shell.

Output lines carry style names (``[success]...[/]``); the theme decides
what they look like. Switch themes by passing a different theme to Console.
"""

from rich.theme import Theme


def create_theme(
    *,
    # Output line styles
    normal: str = "white",
    success: str = "bold green",
    error: str = "bold red",
    warning: str = "bold yellow",
    info: str = "cyan",
    dim: str = "dim",
    highlight: str = "bold white",
    accent: str = "magenta",
    # Chrome
    prompt: str = "bold green",
    image: str = "italic cyan",
) -> Theme:
    """Create a theme with the given styles.

    Ensures every style name the core emits is defined.
    """
    return Theme(
        {
            "normal": normal,
            "success": success,
            "error": error,
            "warning": warning,
            "info": info,
            "dim": dim,
            "highlight": highlight,
            "accent": accent,
            "quantum": accent,
            "prompt": prompt,
            "image": image,
        }
    )


# =============================================================================
# Built-in Themes
# =============================================================================

DEFAULT_THEME = create_theme()

NORD_THEME = create_theme(
    normal="#D8DEE9",
    success="#A3BE8C",
    error="#BF616A",
    warning="#EBCB8B",
    info="#88C0D0",
    dim="#4C566A",
    highlight="bold #ECEFF4",
    accent="#B48EAD",
    prompt="#88C0D0",
    image="italic #81A1C1",
)

DRACULA_THEME = create_theme(
    normal="#F8F8F2",
    success="#50FA7B",
    error="#FF5555",
    warning="#FFB86C",
    info="#8BE9FD",
    dim="#6272A4",
    highlight="bold #F8F8F2",
    accent="#FF79C6",
    prompt="#50FA7B",
    image="italic #BD93F9",
)

MONO_THEME = create_theme(
    normal="white",
    success="bold",
    error="bold red",
    warning="bold yellow",
    info="white",
    dim="dim",
    highlight="bold",
    accent="bold",
    prompt="bold",
    image="italic",
)

THEMES: dict[str, Theme] = {
    "default": DEFAULT_THEME,
    "nord": NORD_THEME,
    "dracula": DRACULA_THEME,
    "mono": MONO_THEME,
}


def get_theme(name: str) -> Theme:
    """Look up a built-in theme (case-insensitive); unknown names get DEFAULT_THEME."""
    return THEMES.get(name.lower(), DEFAULT_THEME)
