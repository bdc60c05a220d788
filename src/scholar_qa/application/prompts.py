"""Prompt templates for each language-model call in the pipeline."""

from __future__ import annotations

# =============================================================================
# Evaluation
# =============================================================================

EVALUATION_SYSTEM = "You are a helpful assistant. Always provide raw JSON without backticks or markdown."

EVALUATION_PROMPT = """
You are an expert AI assistant. Determine if you can answer the following question using your internal knowledge without needing external citations.

IMPORTANT: Be very conservative in your assessment. If you have even the slightest doubt about providing a complete, accurate answer without citations, respond with canAnswer: false.

Return ONLY raw, parseable JSON in one of these two formats:
1. {{"canAnswer": true, "answer": "your answer here"}}
2. {{"canAnswer": false, "queryWord": "suggested search keyword"}}

Do not include backticks, markdown formatting, or any other text.
Question: "{question}"
"""

# =============================================================================
# Direct answer
# =============================================================================

DIRECT_ANSWER_SYSTEM = "You are a knowledgeable assistant answering from well-established knowledge."

DIRECT_ANSWER_PROMPT = """
Answer the following question clearly and accurately using your internal knowledge.
Structure the answer with short paragraphs. Do not invent citations.

Question: "{question}"
"""

# =============================================================================
# Query expansion
# =============================================================================

TRANSLATION_SYSTEM = "You translate academic search queries into English. Reply with the translation only."

TRANSLATION_PROMPT = """
Translate the following search query into English. Keep technical terms intact.
Reply with the translated query only, no quotes or explanations.

Query: {query}
"""

EXPANSION_SYSTEM = "You are a research librarian. Always provide raw JSON without backticks or markdown."

EXPANSION_PROMPT = """
Suggest 2-3 alternative phrasings of the academic search query below that would find
relevant papers the original wording might miss (synonyms, broader or narrower terms).

Return ONLY a JSON array of strings, for example ["term one", "term two"].

Query: {query}
"""

# =============================================================================
# Relevance filtering
# =============================================================================

FILTER_SYSTEM = "You are a research assistant selecting papers. Always provide raw JSON without backticks or markdown."

FILTER_PROMPT = """
Question: "{question}"

Below are {count} candidate papers. Select the {max_papers} papers most relevant to the question,
ordered from most to least relevant.

{papers}

Return ONLY a JSON array of the selected paper indices, for example [3, 0, 7].
"""

# =============================================================================
# Analysis and cited answer
# =============================================================================

ANALYSIS_SYSTEM = "You are a professional scientific researcher with expertise in analyzing academic papers."

ANALYSIS_PROMPT = """
You are a professional academic researcher analyzing scientific papers. Your task is to:
1. Carefully read each paper abstract below
2. Extract the most relevant information to the question: "{question}"
3. For each paper, identify 3-5 key claims or findings that address the question
4. Note any limitations or contradictions between papers

{citations}

Format your analysis as follows:
PAPER ANALYSIS:
[CitationKey1]:
- Key finding 1
- Key finding 2
...

[CitationKey2]:
...

SYNTHESIS:
Briefly summarize how these papers collectively address the question.
"""

ANSWER_SYSTEM = "You are a professional academic writer crafting a response based solely on provided research."

ANSWER_PROMPT = """
You are writing an academic response to the question: "{question}"

You must use the following paper analysis to craft your response:
{analysis}

Important requirements:
1. Every claim must be supported by a specific citation using the format [AuthorYear] inline
2. Only include information that is directly supported by the papers in the analysis
3. Do not introduce new information not found in the papers
4. Maintain academic rigor and precision
5. Include a properly formatted Works Cited section at the end using MLA format
6. Structure your answer with clear sections and paragraphs

The citation keys to use are: {keys}
"""

NO_PAPERS_ANSWER = 'I couldn\'t find relevant scholarly articles for "{question}" using the search term "{query_word}".'

DIRECT_ANSWER_NOTE = "Answer provided solely based on internal knowledge; no citations required."
