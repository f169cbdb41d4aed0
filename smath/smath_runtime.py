# smath_runtime.py

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Literal, Optional

from smath.smath_datatypes import CalcError, Token, PAREN_OPEN, PAREN_CLOSE
from smath.smath_interpreter import Evaluator, Functions, Variables
from smath.smath_lexer import Lexer
from smath.smath_printer import Printer


@dataclass
class ExecutionResult:
    """The structured result of evaluating one line."""
    status: Literal['success', 'error']
    value: Optional[Decimal] = None
    error_message: Optional[str] = None
    error: Optional[Exception] = None

    def format_error(self) -> str:
        """Formats the error with its kind, e.g. 'DivideByZero: Cannot divide by zero'."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if isinstance(self.error, CalcError):
            return f"{type(self.error).__name__}: {msg}"
        return msg


class Session:
    """Tokenizes and evaluates lines against persistent variable and function maps.

    The maps belong to the session (or to whoever passed them in) and
    outlive every single evaluation. A session is not safe to share
    between threads.
    """

    def __init__(self, variables: Optional[Variables] = None, functions: Optional[Functions] = None,
                 *, evaluator: Optional[Evaluator] = None):
        self.variables: Variables = variables if variables is not None else {}
        self.functions: Functions = functions if functions is not None else {}
        self.evaluator = evaluator or Evaluator()
        self.lexer = Lexer()
        self.printer = Printer()

    def evaluate(self, source: str) -> Decimal:
        """Evaluates `source`, raising CalcError on failure."""
        tokens = self.lexer.tokenize(source)
        return self.evaluator.evaluate(tokens, self.variables, self.functions)

    def handle_line(self, source: str) -> ExecutionResult:
        """The main entry point to evaluate one line of input."""
        if not source.strip():
            return ExecutionResult(status='success')
        try:
            value = self.evaluate(source)
        except CalcError as e:
            return ExecutionResult(status='error', error_message=str(e), error=e)
        except Exception as e:
            # Native limits (memory, huge shifts) surface here rather than as a CalcError.
            detail = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            return ExecutionResult(status='error', error_message=f"InternalError: {detail}", error=e)
        return ExecutionResult(status='success', value=value)

    def format_value(self, value: Optional[Decimal]) -> str:
        return self.printer.pformat(value)

    def define(self, name: str, body_source: str):
        """Defines function `name` from the source text of its body.

        Goes through the same capture as `name = (body)` typed at the
        prompt, so the same errors apply.
        """
        tokens = [Token.var_assign(name), PAREN_OPEN, *self.lexer.tokenize(body_source), PAREN_CLOSE]
        self.evaluator.evaluate(tokens, self.variables, self.functions)

    def forget(self, name: str) -> bool:
        """Removes variable or function `name`. Returns False when neither existed."""
        found = False
        if name in self.variables:
            del self.variables[name]
            found = True
        if name in self.functions:
            del self.functions[name]
            found = True
        return found

    def functions_source(self) -> Dict[str, str]:
        """Each defined function as it would be written: `name = (body)`."""
        return {
            name: f"{name} = ({self.printer.pformat(body)})"
            for name, body in sorted(self.functions.items())
        }
