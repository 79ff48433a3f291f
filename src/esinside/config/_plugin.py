"""Plugin model."""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


class Plugin(BaseModel):
    """A plugin to install after the server first becomes ready.

    If ``url`` is set the plugin is installed from it; otherwise it is
    installed by name from the default plugin repository.

    Attributes:
        name: Plugin name. Required.
        url: Optional location to install the plugin from.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    url: str | None = None

    def __init__(self, name: str, url: str | None = None) -> None:
        super().__init__(name=name, url=url)

    @property
    def source(self) -> str:
        """Return what the installer should install: the URL or the name."""
        return self.url if self.url is not None else self.name

    @property
    def install_arguments(self) -> tuple[str, str]:
        """Return the installer arguments for this plugin."""
        return ("install", self.source)

    @property
    def install_command(self) -> str:
        """Return the install command as it would be typed in a shell."""
        return f'install "{self.source}"'
