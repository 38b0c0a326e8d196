"""Explanation Service - Explains physics-informed loss discrepancies with an LLM."""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from loguru import logger
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import PydanticOutputParser
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from ..errors import ExplanationError


class ExplanationParameters(BaseModel):
    """The parameters used to configure the fluid flow simulation."""
    reynolds_number: float = Field(description="The Reynolds number of the fluid flow")
    kinematic_viscosity: float = Field(description="The kinematic viscosity of the fluid")
    fluid_density: float = Field(description="The density of the fluid")
    geometry: str = Field(description="A description of the simulation geometry, including any obstacles")
    boundary_conditions: str = Field(description="A description of the boundary conditions applied to the simulation")


class ExplanationRequest(BaseModel):
    """Everything the provider needs to explain the current training state."""
    loss_data: Dict[str, float] = Field(description="Loss value for each physics-informed loss term")
    simulation_parameters: ExplanationParameters
    historical_flow_states: str = Field(description="The historical flow states as a stringified tensor")


class ExplanationOutput(BaseModel):
    """Structured explanation returned by the LLM."""
    explanation: str = Field(
        description="An explanation of any discrepancies or unexpected scenarios in the physics-informed "
                    "losses, including potential causes and suggestions for refinement."
    )


SYSTEM_MESSAGE = (
    "You are an expert in computational fluid dynamics and Physics-Informed Neural Networks (PINNs). "
    "Your task is to analyze the physics-informed losses during PINN training for fluid flow "
    "simulation and explain any discrepancies or unexpected scenarios."
)

EXPLANATION_TEMPLATE = """Here's the data you have:

Loss Data:
{loss_lines}

Simulation Parameters:
- Reynolds Number: {reynolds_number}
- Kinematic Viscosity: {kinematic_viscosity}
- Fluid Density: {fluid_density}
- Geometry: {geometry}
- Boundary Conditions: {boundary_conditions}

Historical Flow States:
{historical_flow_states}

Based on this information, provide a detailed explanation of any discrepancies or unexpected scenarios in the physics-informed losses. Consider potential causes such as:
- Imbalances in the loss terms (e.g., adversarial loss dominating reconstruction loss).
- Violations of physical constraints (e.g., continuity equation not being satisfied).
- Sensitivity to simulation parameters (e.g., Reynolds number).
- Inadequate network architecture or training data.

Also, suggest possible refinements to the simulation setup, such as:
- Adjusting the weights of the loss terms.
- Improving the network architecture.
- Increasing the size or quality of the training data.
- Modifying the boundary conditions or simulation geometry.

Your explanation should be clear, concise, and actionable."""


def format_loss_lines(loss_data: Dict[str, float]) -> str:
    return "\n".join(f" - {name}: {value}" for name, value in loss_data.items())


def build_prompt_variables(request: ExplanationRequest) -> Dict[str, Any]:
    """Flatten a request into the template's variables."""
    params = request.simulation_parameters
    return {
        "loss_lines": format_loss_lines(request.loss_data),
        "reynolds_number": params.reynolds_number,
        "kinematic_viscosity": params.kinematic_viscosity,
        "fluid_density": params.fluid_density,
        "geometry": params.geometry,
        "boundary_conditions": params.boundary_conditions,
        "historical_flow_states": request.historical_flow_states,
    }


class ExplanationService(ABC):
    """Text explanation from structured training metrics."""

    name = "base"

    def explain(self, request: ExplanationRequest) -> str:
        """
        Explain loss discrepancies for the given request.

        Raises:
            ExplanationError: If the provider fails or returns an empty explanation.
        """
        logger.info(f"Explanation Service ({self.name}): requesting explanation")
        try:
            explanation = self._complete(request)
        except ExplanationError:
            raise
        except Exception as e:
            logger.error(f"Explanation Service ({self.name}) error: {str(e)}")
            raise ExplanationError(f"Explanation provider failed: {str(e)}") from e

        if not explanation or not explanation.strip():
            raise ExplanationError("Explanation provider returned an empty result")

        logger.info(f"Explanation Service ({self.name}): received {len(explanation)} characters")
        return explanation.strip()

    @abstractmethod
    def _complete(self, request: ExplanationRequest) -> Optional[str]:
        """Run one provider round trip and return the raw explanation text."""


class LangChainExplanationService(ExplanationService):
    """Explanation through a LangChain chat model with structured output parsing."""

    name = "langchain"

    def __init__(self, llm: BaseChatModel):
        self.llm = llm
        self.parser = PydanticOutputParser(pydantic_object=ExplanationOutput)
        self.prompt = ChatPromptTemplate.from_messages([
            ("system", SYSTEM_MESSAGE),
            ("human", EXPLANATION_TEMPLATE + "\n\n{format_instructions}\n\nReturn valid JSON that matches the schema exactly."),
        ])

    @classmethod
    def from_settings(cls, api_key: str, model: str) -> "LangChainExplanationService":
        from langchain_openai import ChatOpenAI

        llm = ChatOpenAI(
            api_key=api_key,
            model=model,
            temperature=0.3,
            max_tokens=1500
        )
        return cls(llm)

    def _complete(self, request: ExplanationRequest) -> Optional[str]:
        chain = self.prompt | self.llm | self.parser
        variables = build_prompt_variables(request)
        variables["format_instructions"] = self.parser.get_format_instructions()
        result = chain.invoke(variables)
        return result.explanation


class OpenAIExplanationService(ExplanationService):
    """Explanation through a direct OpenAI chat-completions call."""

    name = "openai"

    def __init__(self, client, model: str = "gpt-4o-mini"):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, api_key: str, model: str) -> "OpenAIExplanationService":
        import openai

        return cls(openai.OpenAI(api_key=api_key), model=model)

    def _complete(self, request: ExplanationRequest) -> Optional[str]:
        user_message = EXPLANATION_TEMPLATE.format(**build_prompt_variables(request))
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": user_message}
            ],
            max_tokens=1500,
            temperature=0.3
        )
        if not response.choices:
            return None
        content = response.choices[0].message.content
        # Structured replies carry the text under "explanation"
        if content and content.lstrip().startswith("{"):
            try:
                return json.loads(content).get("explanation", content)
            except (json.JSONDecodeError, AttributeError):
                return content
        return content
