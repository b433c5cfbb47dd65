"""
HuggingFace Client - Local causal LM for the intake language port

Responsibilities:
- Load model and tokenizer (optional 4-bit NF4 quantization on CUDA)
- Generate short text completions (questions, extracted values, labels)
- Generate JSON completions (objects or arrays) with light repair

Design principles:
- Dependency injection (constructed once at startup, no singleton)
- Fail fast on load errors, raise on generation errors
  (the dialogue core converts any raised error into its fallback path)
- No intake logic here: prompts come from prompt_builder
"""

import logging
import time
from typing import Any, Dict, Optional

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer, BitsAndBytesConfig

from complaint_intake.config import GENERATION_MAX_SECONDS, LOAD_IN_4BIT, MODEL_DEVICE, MODEL_NAME
from complaint_intake.utils.prompt_formatter import DEFAULT_SYSTEM_PROMPT, PromptFormatter

logger = logging.getLogger(__name__)

DEVICE_CUDA = "cuda"
DEVICE_CPU = "cpu"
DEVICE_MAP_AUTO = "auto"

JSON_OBJECT = "object"
JSON_ARRAY = "array"


class HuggingFaceClient:
    """Wrapper for HuggingFace model inference"""

    def __init__(
        self,
        model_name: str = MODEL_NAME,
        load_in_4bit: bool = LOAD_IN_4BIT,
        device: str = MODEL_DEVICE,
        system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT,
        max_time: Optional[float] = GENERATION_MAX_SECONDS
    ) -> None:
        """
        Initialize model and tokenizer

        Args:
            model_name: HuggingFace model identifier
            load_in_4bit: Use 4-bit quantization (CUDA only)
            device: "cuda" or "cpu"
            system_prompt: Instruction prepended to every prompt
            max_time: Seconds before generation stops early (None = no cap)

        Raises:
            RuntimeError: If CUDA requested but not available
            Exception: If tokenizer or model loading fails
        """
        self.model_name = model_name
        self.device = device
        self.max_time = max_time
        self.model = None
        self.tokenizer = None

        if device == DEVICE_CUDA and not torch.cuda.is_available():
            raise RuntimeError("CUDA requested but not available. Set COMPLAINT_MODEL_DEVICE=cpu.")

        logger.info(f"Loading model: {model_name} (device={device}, 4-bit={load_in_4bit})")

        quantization_config = None
        if load_in_4bit and device == DEVICE_CUDA:
            quantization_config = BitsAndBytesConfig(
                load_in_4bit=True,
                bnb_4bit_quant_type="nf4",
                bnb_4bit_compute_dtype=torch.bfloat16,
                bnb_4bit_use_double_quant=True
            )

        try:
            self.tokenizer = AutoTokenizer.from_pretrained(model_name)
            if self.tokenizer.pad_token is None and self.tokenizer.eos_token is not None:
                self.tokenizer.pad_token = self.tokenizer.eos_token
        except Exception as e:
            logger.error(f"Failed to load tokenizer: {e}")
            raise

        self.formatter = PromptFormatter(model_name, self.tokenizer, system_prompt=system_prompt)

        try:
            self.model = AutoModelForCausalLM.from_pretrained(
                model_name,
                quantization_config=quantization_config,
                device_map=DEVICE_MAP_AUTO if device == DEVICE_CUDA else None,
                torch_dtype=torch.bfloat16 if device == DEVICE_CUDA else torch.float32
            )
        except torch.cuda.OutOfMemoryError:
            logger.error("CUDA Out of Memory during model loading")
            raise
        except Exception as e:
            logger.error(f"Failed to load model: {e}")
            raise

        self.model.eval()
        logger.info(f"HuggingFace client ready: {self.formatter.get_info()}")

    def is_loaded(self) -> bool:
        """
        Check if model is loaded and ready

        Returns:
            bool: True if model and tokenizer are loaded
        """
        return self.model is not None and self.tokenizer is not None

    def generate(self, prompt: str, max_tokens: int = 128, temperature: float = 0.3) -> str:
        """
        Generate text completion from prompt

        Args:
            prompt: Plain text prompt (formatting applied here)
            max_tokens: Maximum new tokens
            temperature: Sampling temperature (0.0 = greedy)

        Returns:
            str: Generated text, stripped

        Raises:
            RuntimeError: If model not loaded
            torch.cuda.OutOfMemoryError: If GPU runs out of memory
        """
        if not self.is_loaded():
            raise RuntimeError("Model not loaded")

        start_time = time.time()
        formatted = self.formatter.format_instruction(prompt)

        inputs = self.tokenizer(formatted, return_tensors="pt")
        if self.device == DEVICE_CUDA:
            inputs = inputs.to(DEVICE_CUDA)
        prompt_tokens = inputs.input_ids.shape[1]

        try:
            with torch.no_grad():
                outputs = self.model.generate(
                    inputs.input_ids,
                    attention_mask=inputs.attention_mask,
                    max_new_tokens=max_tokens,
                    max_time=self.max_time,
                    temperature=temperature if temperature > 0 else None,
                    do_sample=temperature > 0,
                    pad_token_id=self.tokenizer.pad_token_id
                )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"CUDA OOM during generation (prompt tokens: {prompt_tokens})")
            raise

        generated_ids = outputs[0][prompt_tokens:]
        text = self.tokenizer.decode(generated_ids, skip_special_tokens=True).strip()

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(f"Generated {len(generated_ids)} tokens in {elapsed_ms:.0f}ms")
        return text

    def generate_json(
        self,
        prompt: str,
        max_tokens: int = 256,
        temperature: float = 0.0,
        expect: str = JSON_OBJECT
    ) -> str:
        """
        Generate a JSON completion with repair attempts

        Args:
            prompt: Prompt requesting JSON output
            max_tokens: Maximum new tokens
            temperature: Sampling temperature (default 0.0 for consistency)
            expect: JSON_OBJECT or JSON_ARRAY

        Returns:
            str: JSON string (possibly repaired). Caller must json.loads().
        """
        text = self.generate(prompt, max_tokens=max_tokens, temperature=temperature)
        return self._repair_json(text, expect=expect)

    def _repair_json(self, text: str, expect: str = JSON_OBJECT) -> str:
        """
        Cut a JSON object/array out of raw model output

        Strips markdown fences and surrounding prose, then balances the
        outer brackets (naive: ignores brackets inside strings).

        Args:
            text: Raw model output
            expect: JSON_OBJECT or JSON_ARRAY

        Returns:
            str: Cleaned JSON candidate (unchanged if no brackets found)
        """
        open_char, close_char = ("[", "]") if expect == JSON_ARRAY else ("{", "}")

        text = text.strip()
        for fence in ("```json", "```"):
            if text.startswith(fence):
                text = text[len(fence):]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

        first = text.find(open_char)
        if first == -1:
            logger.warning(f"No '{open_char}' found in JSON output")
            return text

        last = text.rfind(close_char)
        text = text[first:last + 1] if last > first else text[first:]

        missing = text.count(open_char) - text.count(close_char)
        if missing > 0:
            text += close_char * missing
            logger.debug(f"Added {missing} closing '{close_char}'")

        return text

    def get_model_info(self) -> Dict[str, Any]:
        info = {
            "model_name": self.model_name,
            "device": self.device,
            "is_loaded": self.is_loaded(),
            "formatter": self.formatter.get_info(),
        }
        if self.device == DEVICE_CUDA and torch.cuda.is_available():
            info["gpu_memory_allocated_gb"] = torch.cuda.memory_allocated() / 1e9
        return info
