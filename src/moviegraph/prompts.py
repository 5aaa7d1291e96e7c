from textwrap import dedent

CYPHER_GENERATION_PROMPT_TEMPLATE = dedent(
    """
    You are a Neo4j Developer translating user questions into Cypher to answer questions
    about movies and provide recommendations.
    Convert the user's question into a Cypher statement based on the schema.

    You must:
    * Only use the nodes, relationships and properties mentioned in the schema.
    * When required, `IS NOT NULL` to check for property existence, and not the exists() function.
    * Use the `elementId()` function to return the unique identifier for a node or relationship as `_id`.
        For example:
        ```
        MATCH (a:Person)-[:ACTED_IN]->(m:Movie)
        WHERE a.name = 'Emil Eifrem'
        RETURN m.title AS title, elementId(m) AS _id, a.role AS role
        ```
    * Include extra information about the nodes that may help an LLM provide a more informative answer,
        for example the release date, rating or budget.
    * For movies, use the tmdbId property to return a source URL.
        For example: `'https://www.themoviedb.org/movie/'+ m.tmdbId AS source`.
    * For movie titles that begin with "The", move "the" to the end.
        For example "The 39 Steps" becomes "39 Steps, The" or "the matrix" becomes "Matrix, The".
    * Limit the maximum number of results to 10.
    * Respond with only a Cypher statement.  No preamble.


    Example Question: What role did Tom Hanks play in Toy Story?
    Example Cypher:
    MATCH (a:Actor {{name: 'Tom Hanks'}})-[rel:ACTED_IN]->(m:Movie {{title: 'Toy Story'}})
    RETURN a.name AS Actor, m.title AS Movie, elementId(m) AS _id, rel.role AS RoleInMovie

    Schema:
    {schema}

    Question:
    {question}
    """
).strip()


ANSWER_GENERATION_PROMPT_TEMPLATE = dedent(
    """
    Use only the following context to answer the following question.

    Question:
    {question}

    Context:
    {context}

    Answer as if you have been asked the original question.
    Do not use your pre-trained knowledge.

    If you don't know the answer, just say that you don't know, don't try to make up an answer.
    Include links and sources where possible.
    """
).strip()


REPHRASE_QUESTION_PROMPT_TEMPLATE = dedent(
    """
    Given the following conversation and a question,
    rephrase the follow-up question to be a standalone question about the
    subject of the conversation history.

    If you do not have the required information required to construct
    a standalone question, ask for clarification.

    Always include the subject of the history in the question.

    History:
    {history}

    Question:
    {input}

    Respond with only the standalone question. No preamble.
    """
).strip()
