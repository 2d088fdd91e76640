# =============================================================================
# Unit Tests: Interactive Loop
# =============================================================================
#
# Drives start_conversation() with scripted input lines and captures output.
# =============================================================================

from conftest import FakeOllamaClient, make_settings
from conversation import format_search_results, print_banner, start_conversation
from errors import ChatRequestError, IngestError
from indexer import IndexReport
from knowledge_store import Document, KnowledgeStore, SearchResult
from session import Session


class ScriptedInput:
    """read_line replacement: returns lines in order, then raises EOFError."""

    def __init__(self, *lines):
        self.lines = list(lines)
        self.reads = 0

    def __call__(self, prompt=""):
        self.reads += 1
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


class RecordingSession:
    """Records dispatched calls; replies and failures are configurable."""

    def __init__(self, reply="reply", chat_error=None, ingest_error=None, index_error=None):
        self.settings = make_settings()
        self.reply = reply
        self.chat_error = chat_error
        self.ingest_error = ingest_error
        self.index_error = index_error
        self.chats = []
        self.ingests = []
        self.searches = []
        self.cleared = False

    def converse(self, text, cancel_event=None):
        self.chats.append(text)
        if self.chat_error:
            raise self.chat_error
        return self.reply

    def ingest(self, text, source_label):
        self.ingests.append((text, source_label))
        if self.ingest_error:
            raise self.ingest_error
        return len(self.ingests)

    def search(self, query, top_k=None):
        self.searches.append(query)
        return [SearchResult(Document("doc_0", "apple pie", {"source": "user_input"}), 0.9)]

    def index_directory(self, dir_path, show_progress=False):
        if self.index_error:
            raise self.index_error
        return IndexReport(files_indexed=2, chunks_added=5)

    def count(self):
        return len(self.ingests)

    def clear(self):
        self.cleared = True


def _run(session, *lines):
    output = []
    reader = ScriptedInput(*lines)
    dispatched = start_conversation(session, read_line=reader, write=output.append)
    return output, reader, dispatched


class TestChatDispatch:

    def test_free_text_is_sent_to_chat_once_and_printed(self):
        session = RecordingSession(reply="Hi!")
        output, _, dispatched = _run(session, "hello")

        assert session.chats == ["hello"]
        assert session.ingests == []
        assert output == ["\nHi!"]
        assert dispatched == 1

    def test_input_is_stripped_before_dispatch(self):
        session = RecordingSession()
        _run(session, "   hello world  ")
        assert session.chats == ["hello world"]

    def test_chat_error_is_printed_and_loop_continues(self):
        session = RecordingSession(chat_error=ChatRequestError("boom"))
        output, _, _ = _run(session, "one", "two")

        assert session.chats == ["one", "two"]
        assert output == ["Error: chat failed: boom", "Error: chat failed: boom"]

    def test_add_without_text_is_a_chat_turn(self):
        session = RecordingSession()
        _run(session, "/add")
        assert session.chats == ["/add"]
        assert session.ingests == []


class TestAddDispatch:

    def test_add_ingests_remainder_with_user_input_source(self):
        session = RecordingSession()
        output, _, _ = _run(session, "/add Paris is in France")

        assert session.ingests == [("Paris is in France", "user_input")]
        assert session.chats == []
        assert output == ["Added to knowledge base"]

    def test_add_error_is_reported(self):
        session = RecordingSession(ingest_error=IngestError("document with ID 'doc_0' already exists"))
        output, _, _ = _run(session, "/add x", "hello")

        assert output[0] == "Error adding knowledge: document with ID 'doc_0' already exists"
        assert session.chats == ["hello"]

    def test_ctrl_c_during_add_cancels_only_that_command(self):
        session = RecordingSession(ingest_error=KeyboardInterrupt())
        output, _, dispatched = _run(session, "/add x", "hello")

        assert output[0] == "\nError adding knowledge: cancelled"
        assert session.chats == ["hello"]
        assert dispatched == 2


class TestLoopControl:

    def test_blank_lines_are_ignored(self):
        session = RecordingSession()
        output, reader, dispatched = _run(session, "", "   ", "\t")

        assert session.chats == []
        assert session.ingests == []
        assert output == []
        assert dispatched == 0
        assert reader.reads == 4

    def test_quit_prints_farewell_and_stops(self):
        session = RecordingSession()
        output, reader, _ = _run(session, "/quit", "hello", "/add x")

        assert output == ["Goodbye!"]
        assert session.chats == []
        assert session.ingests == []
        assert reader.lines == ["hello", "/add x"]

    def test_end_of_input_exits_without_farewell(self):
        session = RecordingSession()
        output, _, _ = _run(session, "hello")
        assert "Goodbye!" not in output


class TestKnowledgeCommands:

    def test_search_prints_results(self):
        session = RecordingSession()
        output, _, _ = _run(session, "/search apple")

        assert session.searches == ["apple"]
        assert session.chats == []
        assert "doc_0" in output[0]
        assert "apple pie" in output[0]

    def test_index_reports_counts(self):
        output, _, _ = _run(RecordingSession(), "/index ./notes")
        assert output == ["Indexed 5 chunks from 2 files"]

    def test_ctrl_c_during_index_keeps_loop_running(self):
        session = RecordingSession(index_error=KeyboardInterrupt())
        output, _, _ = _run(session, "/index ./notes", "/count")

        assert output == ["\nError: cancelled", "0 documents in knowledge base"]

    def test_count_and_clear(self):
        session = RecordingSession()
        output, _, _ = _run(session, "/add a", "/count", "/clear")

        assert output[1] == "1 documents in knowledge base"
        assert output[2] == "Knowledge base cleared"
        assert session.cleared

    def test_empty_search_results_message(self):
        assert format_search_results([]) == "No matching documents."


class TestEndToEnd:
    """Loop plus a real Session over the fake Ollama client."""

    def test_partial_stream_is_never_printed(self):
        client = FakeOllamaClient(fragments=["Hel", "lo"], fail_after=1)
        session = Session(make_settings(), client, KnowledgeStore(lambda texts: client.embed(texts, "m")))

        output, _, _ = _run(session, "hello")

        assert len(output) == 1
        assert output[0].startswith("Error: chat failed:")
        assert "Hel" not in output[0]

    def test_two_adds_get_distinct_increasing_ids(self):
        client = FakeOllamaClient()
        session = Session(make_settings(), client, KnowledgeStore(lambda texts: client.embed(texts, "m")))

        _run(session, "/add a", "/add b")

        results = session.store.get_collection("knowledge").search("ab", top_k=2)
        assert sorted(r.document.id for r in results) == ["doc_0", "doc_1"]
        assert sorted(r.document.content for r in results) == ["a", "b"]

    def test_banner_names_the_model(self):
        output = []
        print_banner(RecordingSession(), write=output.append)
        assert output[0] == "Local LLM Ready!"
        assert output[1] == "Model: phi3"
