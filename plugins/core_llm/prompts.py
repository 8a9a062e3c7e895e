# plugins/core_llm/prompts.py

from typing import Sequence

from .contracts import GeneratedFile

SCRIPT_GENERATION_SYSTEM_INSTRUCTION = """You are an expert Minecraft Bedrock addon developer.
Your task is to generate or modify files for a Bedrock Behavior Pack.

You MUST return a strictly valid JSON object with the following structure:
{
  "files": [
    {
      "path": "scripts/main.js",
      "content": "... javascript code ..."
    },
    {
      "path": "entities/my_entity.json",
      "content": "... json content ..."
    }
  ],
  "explanation": "Brief description of changes"
}

Constraints:
- 'path' must be the relative path (e.g., 'scripts/utils.js', 'functions/tick.mcfunction').
- 'content' must be the raw text content of the file.
- Use '@minecraft/server' version '2.4.0-beta' and '@minecraft/server-ui' version '2.1.0-beta' for scripts.
- Do NOT use markdown formatting (no ```json).
- Return ONLY the JSON object.
- If the user asks to modify code, return the FULL content of the modified file(s).
- If a new file is needed (e.g., a database module), create it and also update 'scripts/main.js' to import it if necessary.
- Maintain existing functionality unless asked to change it."""

SCRIPT_DEBUGGER_SYSTEM_INSTRUCTION = """You are an expert Minecraft Bedrock script debugger.
Your task is to analyze JavaScript code written for the Minecraft Script API.
Identify syntax errors, potential runtime errors, and logical issues.
If the code is valid, respond with "No issues found.\""""

ICON_PROMPT_PREFIX = "A 512x512px minecraft pack icon, pixel art style. "


def build_generation_prompt(prompt: str, current_files: Sequence[GeneratedFile]) -> str:
    file_context = "\n".join(f"File: {f.path}\n---\n{f.content}\n---\n" for f in current_files)
    return (
        f'User Request: "{prompt}"\n\n'
        f"Current Project Files:\n{file_context}\n\n"
        "Generate the necessary file updates/creations in JSON format."
    )


def build_check_prompt(script_content: str) -> str:
    return f"Please check the following Minecraft script for errors:\n\n```javascript\n{script_content}\n```"


def build_icon_prompt(prompt: str) -> str:
    return f"{ICON_PROMPT_PREFIX}{prompt}"
