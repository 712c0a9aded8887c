"""
Lexi - Prompt Templates & Fixed Responses
===========================================
Centralised prompt management for the answer synthesizer and the
session orchestrator.  All prompts live here so they can be versioned
and reviewed independently of application logic.

Exports
-------
SYSTEM_PROMPT_TEMPLATE, HISTORY_SECTION_TEMPLATE,
NO_CONTEXT_RESPONSE, NO_DOCUMENT_RESPONSE, SYNTHESIS_FAILED_RESPONSE,
DEFAULT_SESSION_TITLE.
"""

# ══════════════════════════════════════════════════════════════════════
#  SYSTEM PROMPT
# ══════════════════════════════════════════════════════════════════════
# Placeholders: {domain}, {context}, {history_section}

SYSTEM_PROMPT_TEMPLATE: str = """You are a helpful assistant that answers questions about {domain}.

Use the provided document context to answer questions accurately. If the information isn't in the document, say so clearly.

Guidelines:
- Be precise and cite specific sections when possible
- Explain legal terms in simple language
- If something is unclear, suggest consulting a legal professional
- Focus on practical implications for the reader
- Be helpful but do not provide legal advice

Document Context:
{context}
{history_section}"""


# Rendered only when the session already has turns.
HISTORY_SECTION_TEMPLATE: str = """
Previous conversation:
{history}
"""


# ══════════════════════════════════════════════════════════════════════
#  FIXED RESPONSES
# ══════════════════════════════════════════════════════════════════════

NO_CONTEXT_RESPONSE: str = "I couldn't find relevant information in the document to answer your question. Please make sure you've uploaded a document and try rephrasing your question."

NO_DOCUMENT_RESPONSE: str = "I'm sorry, but I need a document to be uploaded to answer your questions. Please upload a legal document first."

SYNTHESIS_FAILED_RESPONSE: str = "I encountered an error while processing your question. Please try again."

DEFAULT_SESSION_TITLE: str = "New Chat Session"
