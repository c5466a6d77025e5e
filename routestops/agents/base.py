from abc import ABC, abstractmethod
from typing import Any, List

from langchain_core.prompts import PromptTemplate


class BaseAgent(ABC):
    def __init__(self):
        self.prompt = None
        self._setup_prompt()

    @abstractmethod
    def _setup_prompt(self):
        """Setup the prompt template for this agent."""
        pass

    @abstractmethod
    async def process(self, **kwargs) -> Any:
        """Process the agent's specific task."""
        pass

    def _create_prompt(self, template: str, input_variables: List[str]) -> PromptTemplate:
        """Create a prompt template with the given template and input variables."""
        return PromptTemplate(
            input_variables=input_variables,
            template=template
        )
