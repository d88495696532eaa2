# exam_prep/core/prompts.py
from typing import List, Dict, Any


class PromptTemplates:
    """Centralized prompt template management"""

    @staticmethod
    def create_grading_prompt(exam_id: str, questions: List[Dict[str, Any]], answer_sheet: str) -> str:
        """Create prompt for grading an uploaded answer sheet against an exam paper"""
        paper = PromptFormatter.format_question_paper(questions)

        return f"""You are a strict but encouraging school examiner. Grade the student's answer sheet for exam {exam_id}.

QUESTION PAPER:
{paper}

STUDENT ANSWER SHEET:
{PromptFormatter.format_answer_sheet(answer_sheet)}

GRADING RULES:
- Grade every question listed in the paper, in the same order, exactly once
- marks_obtained is a whole number between 0 and the marks shown for that question
- marks_possible must equal the marks shown for that question
- A question with no answer on the sheet has attempted=false and marks_obtained=0
- For single-choice questions award full marks only for the correct option
- Give partial credit for method on written answers
- Feedback is one or two sentences, specific to the student's answer

Respond with ONLY a JSON object in this EXACT shape:
{{
  "per_question": [
    {{"question_id": "<id from the paper>", "attempted": true, "marks_obtained": 0, "marks_possible": 0, "feedback": "<text>"}}
  ],
  "improvement_areas": ["<specific area to improve>"],
  "strengths": ["<specific strength observed>"]
}}"""


class PromptFormatter:
    """Utility class for formatting prompt sections"""

    @staticmethod
    def format_question_paper(questions: List[Dict[str, Any]]) -> str:
        lines = []
        current_section = None

        for number, question in enumerate(questions, 1):
            section = question.get("section")
            if section and section != current_section:
                current_section = section
                lines.append(f"\nSECTION {section}")

            lines.append(
                f"Q{number} [id: {question['id']}] ({question['marks']} marks, {question['type']}): "
                f"{question['text']}"
            )

            options = question.get("options")
            if options:
                for index, option in enumerate(options):
                    lines.append(f"    {chr(ord('A') + index)}) {option}")

        return "\n".join(lines).strip()

    @staticmethod
    def format_answer_sheet(answer_sheet: str, max_length: int = 12000) -> str:
        """Trim the answer sheet at a line boundary when it is too long for the prompt"""
        if len(answer_sheet) <= max_length:
            return answer_sheet

        truncated = answer_sheet[:max_length]
        last_newline = truncated.rfind('\n')
        if last_newline > max_length * 0.8:
            return truncated[:last_newline] + "\n[...truncated]"

        return truncated + "\n[...truncated]"

    @staticmethod
    def clean_json_response(response: str) -> str:
        """Strip markdown code fences some models wrap around JSON"""
        cleaned = response.strip()
        if cleaned.startswith("```"):
            cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
            if cleaned.rstrip().endswith("```"):
                cleaned = cleaned.rstrip()[:-3]
        return cleaned.strip()
