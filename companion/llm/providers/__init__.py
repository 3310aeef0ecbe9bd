import importlib
import pkgutil
from pathlib import Path

from loguru import logger

from companion.configuration import ConfigValue

from .provider import LLMProvider, ProviderRegistry

Providers: ProviderRegistry = ProviderRegistry()

package_dir = Path(__file__).parent

# Import every provider module so that it registers itself
for module_info in pkgutil.iter_modules([str(package_dir)]):
    if module_info.name not in ["__init__", "provider"]:
        try:
            importlib.import_module(f".{module_info.name}", package=__name__)
        except ImportError as e:
            logger.warning(f"Could not import provider module {module_info.name}: {e}")


def get_provider(name: str | None = None) -> LLMProvider:
    """Instantiate the named provider, or the one configured under `llm.provider`"""
    name = name or ConfigValue("llm.provider").resolve() or "openai"
    if not Providers.is_registered(name):
        raise ValueError(f"Unknown LLM provider '{name}'. Available providers: {list(Providers.items.keys())}")
    return Providers.get(name)()
