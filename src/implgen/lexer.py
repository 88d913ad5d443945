import ply.lex as lex
import logging

from implgen.errors import ListingError, SourceLocation, get_source_context

logger = logging.getLogger(__name__)

MODIFIERS = (
    'public', 'protected', 'private', 'abstract', 'static', 'final',
    'native', 'synchronized', 'transient', 'volatile', 'strictfp',
    'default', 'synthetic', 'bridge',
)


class Lexer:
    """Tokenizer for signature listings (javap-style declaration dumps)"""

    t_ignore = ' \t\r'

    reserved = {
        'class': 'CLASS',
        'interface': 'INTERFACE',
        'enum': 'ENUM',
        'extends': 'EXTENDS',
        'implements': 'IMPLEMENTS',
        'throws': 'THROWS',
        'super': 'SUPER',
    }
    reserved.update({word: 'MODIFIER' for word in MODIFIERS})

    tokens = [
        'IDENTIFIER',
        'LESS', 'GREATER', 'LPAREN', 'RPAREN', 'LBRACE', 'RBRACE',
        'LBRACKET', 'RBRACKET', 'COMMA', 'SEMICOLON', 'DOT', 'ELLIPSIS',
        'QUESTION', 'AMPERSAND', 'AT',
    ] + sorted(set(reserved.values()))

    t_LESS = r'<'
    t_GREATER = r'>'
    t_LPAREN = r'\('
    t_RPAREN = r'\)'
    t_LBRACE = r'\{'
    t_RBRACE = r'\}'
    t_LBRACKET = r'\['
    t_RBRACKET = r'\]'
    t_COMMA = r','
    t_SEMICOLON = r';'
    t_DOT = r'\.'
    t_ELLIPSIS = r'\.\.\.'
    t_QUESTION = r'\?'
    t_AMPERSAND = r'&'
    t_AT = r'@'

    # javap header line
    def t_COMPILED_FROM(self, t):
        r'Compiled\ from\ "[^"\n]*"'
        pass

    def t_IDENTIFIER(self, t):
        r'[^\W\d][\w$]*|\$[\w$]*'
        t.type = self.reserved.get(t.value, 'IDENTIFIER')
        return t

    def t_COMMENT(self, t):
        r'(\#|//)[^\n]*'
        pass

    def t_newline(self, t):
        r'\n+'
        for i in range(len(t.value)):
            self.line_starts.append(t.lexpos + i + 1)
        t.lexer.lineno += len(t.value)

    def t_error(self, t):
        line_start = self.line_starts[min(t.lineno - 1, len(self.line_starts) - 1)]
        column = t.lexpos - line_start + 1
        raise ListingError(
            message=f"Illegal character '{t.value[0]}'",
            location=SourceLocation(self.source_file, t.lineno, column),
            context=get_source_context(self.source_file, t.lineno, source=self.source),
        )

    def __init__(self):
        self.lexer = lex.lex(module=self)
        self.line_starts = [0]
        self.source = ""
        self.source_file = "<string>"

    def input(self, data, source_file="<string>"):
        self.source = data
        self.source_file = source_file
        self.line_starts = [0]
        self.lexer.lineno = 1
        self.lexer.input(data)

    def token(self):
        tok = self.lexer.token()
        if tok:
            line_start = self.line_starts[min(tok.lineno - 1, len(self.line_starts) - 1)]
            tok.column = tok.lexpos - line_start + 1
        return tok

    def tokenize(self, data, source_file="<string>"):
        """Convenience for tests and debugging"""
        self.input(data, source_file)
        result = []
        while True:
            tok = self.token()
            if not tok:
                return result
            result.append(tok)
