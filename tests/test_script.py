from app.core.podcast import (
    chunk_text,
    clean_script_for_tts,
    count_words,
    estimate_duration,
    format_duration,
    inject_intro_outro,
    parse_script_sections,
    truncate_at_sentence,
    validate_script,
)
from app.core.tasks import parse_tasks


class TestCleanScript:

    def test_removes_markup_that_would_be_read_aloud(self):
        script = (
            "[INTRO]\n"
            "# Bienvenidos al episodio\n"
            "(música) Hola a todos.\n"
            "- Primer punto.\n"
            "* Segundo punto.\n"
            "---\n"
            "[PAUSA LARGA]\n"
            "Lee [la guía](https://example.com/guia) hoy."
        )
        clean = clean_script_for_tts(script)

        assert "[" not in clean and "]" not in clean
        assert "#" not in clean
        assert "---" not in clean
        assert "https://" not in clean
        assert "Bienvenidos al episodio" in clean
        assert "Primer punto." in clean
        assert "Segundo punto." in clean
        assert "Lee la guía hoy." in clean

    def test_emphasis_becomes_upper_case(self):
        assert clean_script_for_tts("Esto es **muy** *importante*.") == "Esto es MUY IMPORTANTE."

    def test_keeps_punctuation_and_pause_tags(self):
        clean = clean_script_for_tts('Hola.   <break time="1s" />   ¿Seguimos?')
        assert clean == 'Hola. <break time="1s"/> ¿Seguimos?'

    def test_collapses_blank_lines(self):
        assert clean_script_for_tts("Uno.\n\n\n\n\nDos.") == "Uno.\n\nDos."

    def test_empty_script(self):
        assert clean_script_for_tts("") == ""


class TestDuration:

    def test_count_words_ignores_tags(self):
        assert count_words('uno dos <break time="1s"/> tres') == 3

    def test_estimate_duration_at_150_wpm(self):
        assert estimate_duration(" ".join(["palabra"] * 150)) == 60
        assert estimate_duration(" ".join(["palabra"] * 5)) == 2

    def test_format_duration(self):
        assert format_duration(0) == "0:00"
        assert format_duration(427) == "7:07"


class TestChunking:

    def test_short_text_is_one_chunk(self):
        assert chunk_text("Hola mundo.", 100) == ["Hola mundo."]

    def test_chunks_respect_limit_and_keep_order(self):
        sentences = [f"Frase numero {i} del guion." for i in range(200)]
        text = " ".join(sentences)

        chunks = chunk_text(text, 500)

        assert len(chunks) > 1
        assert all(len(chunk) <= 500 for chunk in chunks)
        assert " ".join(chunks) == text

    def test_cuts_after_sentence_end(self):
        text = "Primera frase completa. Segunda frase que no cabe entera"
        chunks = chunk_text(text, 40)
        assert chunks[0] == "Primera frase completa."

    def test_prefers_paragraph_break_in_second_half(self):
        first = "a" * 30 + ". " + "b" * 30 + "."
        second = "Otro parrafo. Con frases."
        chunks = chunk_text(first + "\n\n" + second, 80)
        assert chunks == [first, second]

    def test_falls_back_to_whitespace(self):
        text = "palabra " * 20
        chunks = chunk_text(text, 30)
        assert all(len(chunk) <= 30 for chunk in chunks)
        assert " ".join(chunks).split() == text.split()

    def test_never_cuts_inside_a_pause_tag(self):
        text = clean_script_for_tts("palabra " * 10 + '<break time="1s"/> ' + "otra " * 10)
        tag_at = text.index("<break")

        # The window ends inside the tag, right after its inner space.
        chunks = chunk_text(text, text.index('"1s"'))

        assert all(chunk.count("<") == chunk.count(">") for chunk in chunks)
        assert chunks[0] == text[:tag_at].strip()
        assert chunks[1].startswith('<break time="1s"/>')
        assert " ".join(chunks) == text

    def test_hard_cut_only_for_oversized_token(self):
        chunks = chunk_text("x" * 25, 10)
        assert chunks == ["x" * 10, "x" * 10, "x" * 5]

    def test_truncate_at_sentence(self):
        text = "Uno dos tres. Cuatro cinco seis. Siete ocho nueve."
        assert truncate_at_sentence(text, 35) == "Uno dos tres. Cuatro cinco seis."
        assert truncate_at_sentence(text, 200) == text


class TestScriptStructure:

    def test_parse_sections(self, long_script):
        sections = parse_script_sections(long_script)
        assert [s["type"] for s in sections] == ["intro", "content", "outro"]
        assert all(s["estimatedDuration"] > 0 for s in sections)

    def test_validate_script_reports_metrics(self, long_script):
        result = validate_script(long_script)
        assert result["isValid"] is True
        assert result["metrics"]["sectionCount"] == 3
        assert result["metrics"]["hasPauses"] is True
        assert "El script es muy corto (menos de 3 minutos)" in result["warnings"]

    def test_validate_script_rejects_tiny_script(self):
        result = validate_script("Hola.")
        assert result["isValid"] is False
        assert result["errors"]

    def test_inject_intro_outro_once(self):
        script = inject_intro_outro("Contenido.", intro="Hola", outro="Adios")
        assert script.startswith("[INTRO]")
        assert script.rstrip().endswith("Adios")
        assert inject_intro_outro(script, intro="Hola", outro="Adios") == script


class TestTaskParsing:

    def test_checkbox_list(self):
        tasks = parse_tasks("Plan:\n- [ ] Instalar ComfyUI\n- [x] Descargar Flux\n- [ ] Probar el workflow")
        assert [t.title for t in tasks] == ["Instalar ComfyUI", "Descargar Flux", "Probar el workflow"]
        assert [t.completed for t in tasks] == [False, True, False]

    def test_numbered_steps_need_a_task_keyword_to_start(self):
        content = "1. Crear el nodo de carga\n2. Conectar el VAE\n3. Lanzar la cola"
        tasks = parse_tasks(content)
        assert [t.title for t in tasks] == ["Crear el nodo de carga", "Conectar el VAE", "Lanzar la cola"]

    def test_plain_numbered_list_is_not_a_task_list(self):
        assert parse_tasks("1. Rojo\n2. Verde\n3. Azul") == []

    def test_single_task_is_ignored(self):
        assert parse_tasks("- [ ] Solo una cosa") == []
