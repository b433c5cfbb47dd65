"""
Prompt Formatter - Model-specific chat formatting for intake prompts

Wraps a plain intake prompt (plus optional system instruction) in the
instruction format the loaded model family expects.

Priority:
1. Tokenizer chat template (system message merged when unsupported)
2. Manual format for a known family
3. Plain text passthrough
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a careful hospital patient-feedback intake assistant. "
    "Follow the output format exactly and never invent details the patient did not give."
)


def _merge(system_prompt: Optional[str], prompt: str) -> str:
    return f"{system_prompt}\n\n{prompt}" if system_prompt else prompt


class PromptFormatter:
    """Format intake prompts for specific model families"""

    # Families whose chat format has no separate system turn take a merged prompt
    MANUAL_FORMATS = {
        "mistral": lambda system, prompt: f"[INST] {_merge(system, prompt)} [/INST]",
        "llama-3": lambda system, prompt: (
            "<|begin_of_text|>"
            + (f"<|start_header_id|>system<|end_header_id|>\n\n{system}<|eot_id|>" if system else "")
            + f"<|start_header_id|>user<|end_header_id|>\n\n{prompt}<|eot_id|>"
            + "<|start_header_id|>assistant<|end_header_id|>\n\n"
        ),
        "zephyr": lambda system, prompt: (
            (f"<|system|>\n{system}</s>\n" if system else "")
            + f"<|user|>\n{prompt}</s>\n<|assistant|>\n"
        ),
        "qwen": lambda system, prompt: (
            (f"<|im_start|>system\n{system}<|im_end|>\n" if system else "")
            + f"<|im_start|>user\n{prompt}<|im_end|>\n<|im_start|>assistant\n"
        ),
        "phi": lambda system, prompt: f"<|user|>\n{_merge(system, prompt)}<|end|>\n<|assistant|>\n",
    }

    def __init__(self, model_name: str, tokenizer=None, system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT):
        """
        Initialize formatter

        Args:
            model_name: HuggingFace model identifier
            tokenizer: Optional tokenizer with chat_template attribute
            system_prompt: Instruction prepended to every prompt (None to disable)
        """
        self.model_name = model_name
        self.tokenizer = tokenizer
        self.system_prompt = system_prompt
        self.model_family = self._detect_model_family(model_name)

        self.has_chat_template = getattr(tokenizer, 'chat_template', None) is not None

        if self.has_chat_template:
            logger.info(f"Using tokenizer chat template for {model_name}")
        elif self.model_family in self.MANUAL_FORMATS:
            logger.info(f"Using manual formatting for {self.model_family} family")
        else:
            logger.warning(f"No chat template or known format for {model_name}, sending plain prompts")

    def _detect_model_family(self, model_name: str) -> str:
        name_lower = model_name.lower()

        # Most specific first
        if "llama-3" in name_lower or "llama3" in name_lower:
            return "llama-3"
        if "mistral" in name_lower or "mixtral" in name_lower or "llama" in name_lower:
            return "mistral"
        if "zephyr" in name_lower:
            return "zephyr"
        if "qwen" in name_lower:
            return "qwen"
        if "phi" in name_lower:
            return "phi"
        return "generic"

    def format_instruction(self, prompt: str) -> str:
        """
        Format an intake prompt for the model

        Args:
            prompt: Plain text prompt

        Returns:
            str: Prompt ready for tokenization

        Examples:
            >>> formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2", system_prompt=None)
            >>> formatter.format_instruction("Classify this complaint")
            '[INST] Classify this complaint [/INST]'
        """
        if self.has_chat_template:
            try:
                return self._apply_chat_template(prompt)
            except Exception as e:
                logger.warning(f"Tokenizer chat template failed: {e}. Falling back to manual formatting")

        if self.model_family in self.MANUAL_FORMATS:
            return self.MANUAL_FORMATS[self.model_family](self.system_prompt, prompt)

        return _merge(self.system_prompt, prompt)

    def _apply_chat_template(self, prompt: str) -> str:
        messages = [{"role": "user", "content": prompt}]
        if self.system_prompt:
            messages.insert(0, {"role": "system", "content": self.system_prompt})

        try:
            return self.tokenizer.apply_chat_template(messages, tokenize=False, add_generation_prompt=True)
        except Exception:
            # Some templates (e.g. Mistral) reject a system role
            if not self.system_prompt:
                raise
            merged = [{"role": "user", "content": _merge(self.system_prompt, prompt)}]
            return self.tokenizer.apply_chat_template(merged, tokenize=False, add_generation_prompt=True)

    def get_info(self) -> dict:
        return {
            "model_name": self.model_name,
            "model_family": self.model_family,
            "has_chat_template": self.has_chat_template,
            "system_prompt": self.system_prompt is not None,
            "formatting_method": (
                "tokenizer_template" if self.has_chat_template
                else "manual" if self.model_family in self.MANUAL_FORMATS
                else "none"
            ),
        }
