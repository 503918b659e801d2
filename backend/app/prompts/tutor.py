"""Tutor prompt templates for the AI endpoints.

Contains three prompt sets:
1. Chat tutor - guides a student through their whiteboard work
2. Math solver - returns only the final answer to an expression
3. Handwriting OCR - extracts a math expression from a whiteboard image
"""

# =============================================================================
# Chat Tutor
# =============================================================================

_CHAT_SYSTEM_TEMPLATE = """You are a helpful AI tutor on an educational whiteboard app. Your role is to help students learn by guiding them through problems.

Context about the student's work:
- Subject: {subject}
- Grade level: {grade_level}
- Assignment instructions: {instructions}
- Current canvas: {description}

Guidelines for your responses:
1. Be encouraging and patient - celebrate small wins
2. Give hints and guide thinking before giving direct answers
3. Use LaTeX for math expressions: $inline$ for inline and $$block$$ for displayed equations
4. Break down complex problems into steps
5. Ask clarifying questions if the student's question is unclear
6. Keep explanations clear and age-appropriate
7. If you need to show worked examples, use clear step-by-step formatting

Remember: Your goal is to help the student LEARN, not just get answers."""


def build_chat_system_prompt(
    *,
    subject: str | None = None,
    grade_level: str | None = None,
    instructions: str | None = None,
    description: str | None = None,
) -> str:
    """Build the tutor system prompt from the student's canvas context."""
    return _CHAT_SYSTEM_TEMPLATE.format(
        subject=subject or "General",
        grade_level=grade_level or "Not specified",
        instructions=instructions or "None provided",
        description=description or "Empty canvas",
    )


# =============================================================================
# Handwriting OCR
# =============================================================================

OCR_INSTRUCTION = (
    "Look at this handwritten math. Extract ONLY the mathematical expression "
    "or equation. Return it as plain text (not LaTeX). For example: "
    '"3 + 5" or "2x + 3 = 7" or "y = 2x + 1". If you cannot read it clearly, '
    "return an empty string."
)


# =============================================================================
# Math Solver
# =============================================================================

SOLVE_MATH_SYSTEM_PROMPT = """You are a math solver. Given a mathematical expression or equation, compute the answer.

RULES:
1. Return ONLY the final numerical answer or simplified result
2. Do NOT show work or steps
3. Do NOT include explanations
4. If it's an equation to solve (like "2x + 5 = 15"), return the solution (like "x = 5")
5. If it's an expression to evaluate (like "3 + 5"), return the result (like "8")
6. If it's a simplification (like "x^2 - 4" to factor), return simplified form (like "(x-2)(x+2)")
7. For trig, use degrees unless radians specified
8. Round decimals to 4 places max
9. If you cannot solve it, return "?"

Examples:
- Input: "2 + 3" -> Output: "5"
- Input: "2x + 5 = 15" -> Output: "x = 5"
- Input: "sin(30)" -> Output: "0.5"
- Input: "sqrt(144)" -> Output: "12"
- Input: "x^2 - 9" (factor) -> Output: "(x-3)(x+3)"
- Input: "log(100)" -> Output: "2\""""


def build_solve_math_prompt(
    expression: str, variables: dict[str, int | float | str] | None = None
) -> str:
    """Build the user message for the math solver.

    Args:
        expression: Expression or equation to solve.
        variables: Known variable values, listed after the expression.

    Returns:
        User message content.
    """
    prompt = f"Solve: {expression}"
    if variables:
        known = "\n".join(f"{name} = {value}" for name, value in variables.items())
        prompt += f"\n\nKnown variables:\n{known}"
    return prompt
