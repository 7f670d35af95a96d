"""Static age-band catalog that drives content generation and shortage scans."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class AgeBand:
    age_min: int
    age_max: int

    @property
    def key(self) -> str:
        return f"{self.age_min}-{self.age_max}"

    def contains(self, months: int) -> bool:
        return self.age_min <= months <= self.age_max


@dataclass(frozen=True)
class AgeBandVariant:
    age_min: int
    age_max: int
    schema_target: str
    domain_es: str
    domain_en: str
    focus_es: str
    focus_en: str

    @property
    def band(self) -> AgeBand:
        return AgeBand(self.age_min, self.age_max)

    @property
    def band_key(self) -> str:
        return self.band.key

    def domain(self, language: str) -> str:
        return self.domain_es if language == "es" else self.domain_en

    def focus(self, language: str) -> str:
        return self.focus_es if language == "es" else self.focus_en


@dataclass(frozen=True)
class ArticleDefinition:
    age_min: int
    age_max: int
    type: str
    topic: str
    topic_es: str
    domain_en: str
    domain_es: str
    key_science: str

    @property
    def band(self) -> AgeBand:
        return AgeBand(self.age_min, self.age_max)

    def title(self, language: str) -> str:
        return self.topic_es if language == "es" else self.topic

    def domain(self, language: str) -> str:
        return self.domain_es if language == "es" else self.domain_en


# (age_min, age_max, schema_target, domain_es, domain_en, focus_es, focus_en)
_ACTIVITY_VARIANTS: List[Tuple[int, int, str, str, str, str, str]] = [
    (0, 4, "trajectory", "Desarrollo Temprano", "Early Development", "seguimiento visual y vínculo", "visual tracking and bonding"),
    (0, 4, "enveloping", "Vínculo", "Bonding", "contacto piel a piel y arrullo", "skin-to-skin contact and swaddled calm"),
    (0, 4, "rotation", "Sensorial", "Sensory", "contrastes, sonidos suaves y movimiento lento", "contrast, soft sounds and slow motion"),
    (0, 4, "positioning", "Motor", "Motor", "tiempo boca abajo y control de cabeza", "tummy time and head control"),
    (4, 8, "enclosure", "Exploración Sensorial", "Sensory Exploration", "causa y efecto con objetos cotidianos", "cause and effect with household objects"),
    (4, 8, "trajectory", "Motor", "Motor", "alcanzar, soltar y dejar caer", "reaching, releasing and dropping"),
    (4, 8, "enveloping", "Vínculo", "Bonding", "escondite con telas y permanencia del objeto", "peekaboo with cloths and object permanence"),
    (4, 8, "rotation", "Lenguaje", "Language", "canciones con gestos y turnos de balbuceo", "gesture songs and babble turn-taking"),
    (8, 14, "transporting", "Pensamiento Científico", "Scientific Thinking", "experimentación motora y curiosidad", "motor experimentation and curiosity"),
    (8, 14, "enclosure", "Exploración", "Exploration", "meter y sacar objetos de recipientes", "putting objects in and out of containers"),
    (8, 14, "trajectory", "Motor", "Motor", "rodar pelotas y empujar juguetes", "rolling balls and pushing toys"),
    (8, 14, "connecting", "Lenguaje", "Language", "señalar, nombrar y primeras palabras", "pointing, naming and first words"),
    (14, 24, "connecting", "Autonomía", "Autonomy", "lenguaje, límites y autorregulación", "language, boundaries, and co-regulation"),
    (14, 24, "positioning", "Pensamiento Lógico", "Logical Thinking", "alinear, apilar y clasificar", "lining up, stacking and sorting"),
    (14, 24, "transporting", "Motor", "Motor", "cargar, llenar y vaciar", "carrying, filling and emptying"),
    (14, 24, "transforming", "Sensorial", "Sensory", "mezclar agua, arena y masa", "mixing water, sand and dough"),
    (24, 30, "transforming", "Aprendizaje Activo", "Active Learning", "juego simbólico y solución de problemas", "symbolic play and problem solving"),
    (24, 30, "enclosure", "Juego Simbólico", "Pretend Play", "casitas, cajas y escondites", "play houses, boxes and hideouts"),
    (24, 30, "rotation", "Motor", "Motor", "girar, rodar y bailar", "spinning, rolling and dancing"),
    (24, 30, "connecting", "Lenguaje", "Language", "cuentos cortos y frases de dos palabras", "short stories and two-word phrases"),
    (30, 36, "positioning", "Social", "Social", "colaboración, turnos y empatía", "collaboration, turn-taking, and empathy"),
    (30, 36, "transporting", "Vida Práctica", "Practical Life", "ayudar en casa con tareas reales", "helping at home with real tasks"),
    (30, 36, "trajectory", "Motor", "Motor", "lanzar, apuntar y atrapar", "throwing, aiming and catching"),
    (30, 36, "enveloping", "Emociones", "Emotions", "nombrar emociones con títeres", "naming feelings with puppets"),
    (36, 48, "transforming", "Creatividad", "Creativity", "expresión creativa con materiales simples", "creative expression with simple materials"),
    (36, 48, "connecting", "Construcción", "Construction", "puentes, caminos y uniones", "bridges, paths and joins"),
    (36, 48, "enclosure", "Juego Simbólico", "Pretend Play", "fuertes y mundos pequeños", "forts and small worlds"),
    (36, 48, "positioning", "Matemáticas", "Math", "patrones, series y conteo", "patterns, sequences and counting"),
    (48, 54, "connecting", "Pensamiento Lógico", "Logical Thinking", "retos de construcción y planificación", "construction challenges and planning"),
    (48, 54, "trajectory", "Ciencia", "Science", "rampas, velocidad y predicción", "ramps, speed and prediction"),
    (48, 54, "transforming", "Cocina", "Kitchen Science", "recetas sencillas y cambios de estado", "simple recipes and changes of state"),
    (48, 54, "rotation", "Motor", "Motor", "ruedas, engranajes y giros", "wheels, gears and spinning"),
    (54, 60, "positioning", "Funciones Ejecutivas", "Executive Function", "reglas, atención e inhibición", "rules, attention, and inhibition"),
    (54, 60, "transporting", "Vida Práctica", "Practical Life", "planear y llevar una pequeña misión", "planning and carrying out a small mission"),
    (54, 60, "enveloping", "Lectoescritura", "Early Literacy", "cartas, sobres y mensajes secretos", "letters, envelopes and secret messages"),
    (54, 60, "connecting", "Social", "Social", "juegos cooperativos con reglas", "cooperative games with rules"),
    (60, 72, "connecting", "Lenguaje", "Language", "lectura compartida y narración", "shared reading and storytelling"),
    (60, 72, "positioning", "Matemáticas", "Math", "mapas, medidas y comparaciones", "maps, measuring and comparing"),
    (60, 72, "transforming", "Ciencia", "Science", "experimentos de mezcla y observación", "mixing experiments and observation"),
    (60, 72, "trajectory", "Motor", "Motor", "circuitos y juegos de puntería", "obstacle courses and target games"),
    (72, 84, "transporting", "Proyecto", "Project-Based", "proyectos de varios días", "multi-day projects"),
    (72, 84, "connecting", "Pensamiento Lógico", "Logical Thinking", "inventos con materiales reciclados", "inventions from recycled materials"),
    (72, 84, "rotation", "Ciencia", "Science", "ciclos, molinos y movimiento", "cycles, pinwheels and motion"),
    (72, 84, "enclosure", "Creatividad", "Creativity", "maquetas y escenarios", "dioramas and model scenes"),
    (84, 96, "transforming", "Motivación", "Motivation", "intereses intensos y autonomía", "intense interests and autonomy"),
    (84, 96, "positioning", "Funciones Ejecutivas", "Executive Function", "planificar, priorizar y revisar", "planning, prioritizing and reviewing"),
    (84, 96, "connecting", "Social", "Social", "resolver conflictos con acuerdos", "resolving conflicts with agreements"),
    (84, 96, "trajectory", "Ciencia", "Science", "física casera con lanzamientos", "kitchen-table physics with launches"),
    (96, 108, "connecting", "Pensamiento Crítico", "Critical Thinking", "investigación y argumentación", "research and argumentation"),
    (96, 108, "transforming", "Ciencia", "Science", "hipótesis y experimentos controlados", "hypotheses and controlled experiments"),
    (96, 108, "positioning", "Matemáticas", "Math", "presupuestos, gráficas y datos", "budgets, charts and data"),
    (96, 108, "enveloping", "Creatividad", "Creativity", "escritura creativa y cómics", "creative writing and comics"),
    (108, 120, "connecting", "Responsabilidad", "Responsibility", "tareas reales con impacto", "real tasks with impact"),
    (108, 120, "transporting", "Proyecto", "Project-Based", "emprendimientos pequeños", "small entrepreneurial projects"),
    (108, 120, "transforming", "Ciencia", "Science", "ingeniería y prototipos", "engineering and prototypes"),
    (108, 120, "positioning", "Funciones Ejecutivas", "Executive Function", "metas semanales y seguimiento", "weekly goals and tracking"),
    (120, 132, "connecting", "Identidad", "Identity", "reflexión y toma de decisiones", "reflection and decision making"),
    (120, 132, "transforming", "Creatividad", "Creativity", "proyectos artísticos con propósito", "purposeful art projects"),
    (120, 132, "positioning", "Pensamiento Crítico", "Critical Thinking", "evaluar fuentes y noticias", "evaluating sources and news"),
    (120, 132, "enveloping", "Emociones", "Emotions", "diario emocional y conversación", "emotion journaling and conversation"),
    (132, 144, "connecting", "Propósito", "Purpose", "proyectos con significado social", "socially meaningful projects"),
    (132, 144, "transporting", "Responsabilidad", "Responsibility", "voluntariado y servicio", "volunteering and service"),
    (132, 144, "transforming", "Ciencia", "Science", "investigación propia y presentación", "independent research and presenting"),
    (132, 144, "positioning", "Identidad", "Identity", "valores, límites y elecciones", "values, boundaries and choices"),
]

ACTIVITY_DEFINITIONS: List[AgeBandVariant] = [AgeBandVariant(*row) for row in _ACTIVITY_VARIANTS]


# (age_min, age_max, type, topic, topic_es, domain_en, domain_es, key_science)
_ARTICLE_ROWS: List[Tuple[int, int, str, str, str, str, str, str]] = [
    (0, 4, "article", "Why your newborn stares at faces", "Por qué tu recién nacido mira los rostros", "Visual Development", "Desarrollo Visual", "newborn face preference studies, Johnson & Morton"),
    (0, 4, "guide", "Soothing a crying newborn without guesswork", "Calmar el llanto del recién nacido sin adivinar", "Emotional Regulation", "Regulación Emocional", "co-regulation, Tronick's still-face research"),
    (0, 4, "research", "What serve-and-return means in the first weeks", "Qué significa el ida y vuelta en las primeras semanas", "Attachment", "Apego", "Harvard Center on the Developing Child, serve and return"),
    (4, 8, "article", "Everything goes in the mouth: the science of mouthing", "Todo a la boca: la ciencia de explorar con la boca", "Sensory Exploration", "Exploración Sensorial", "oral exploration and sensory mapping, Rochat"),
    (4, 8, "guide", "Turning babbling into conversation", "Convertir el balbuceo en conversación", "Language", "Lenguaje", "contingent responsiveness, Goldstein & Schwade"),
    (4, 8, "research", "Object permanence and the peekaboo brain", "La permanencia del objeto y el cerebro del escondite", "Cognitive Development", "Desarrollo Cognitivo", "Piaget, Baillargeon violation-of-expectation studies"),
    (8, 14, "article", "Dropping things on purpose: your little scientist", "Tirar cosas a propósito: tu pequeño científico", "Scientific Thinking", "Pensamiento Científico", "infant causal learning, Gopnik"),
    (8, 14, "guide", "Making crawling and cruising spaces safe and rich", "Espacios seguros y ricos para gatear y caminar", "Motor & Cognitive", "Motor y Cognitivo", "locomotion and spatial cognition, Adolph"),
    (8, 14, "research", "Pointing: the gesture that predicts language", "Señalar: el gesto que anticipa el lenguaje", "Language", "Lenguaje", "pointing and vocabulary growth, Tomasello, Rowe"),
    (14, 24, "article", "The banana phone and the two-reality mind", "El teléfono banana y la mente de dos realidades", "Imagination", "Imaginación", "symbolic play, Piaget, Lillard"),
    (14, 24, "guide", "Saying no without a power struggle", "Decir no sin una lucha de poder", "Autonomy", "Autonomía", "autonomy support, self-determination theory"),
    (14, 24, "research", "Why toddlers repeat the same game fifty times", "Por qué los niños repiten el mismo juego cincuenta veces", "Learning", "Aprendizaje", "repetition and prediction learning, Schwade"),
    (24, 36, "article", "The endless why: causal questions at two", "El eterno por qué: preguntas causales a los dos años", "Causal Thinking", "Pensamiento Causal", "children's questions, Chouinard"),
    (24, 36, "guide", "Tantrums as a regulation skill in progress", "Las rabietas como una habilidad de regulación en construcción", "Emotional Regulation", "Regulación Emocional", "prefrontal development and co-regulation"),
    (24, 36, "research", "Sharing and turn-taking: what studies show", "Compartir y esperar turnos: lo que muestran los estudios", "Social", "Social", "early prosocial behavior, Warneken & Tomasello"),
    (36, 48, "article", "Imaginary friends are good news", "Los amigos imaginarios son una buena noticia", "Creativity", "Creatividad", "imaginary companions and theory of mind, Taylor"),
    (36, 48, "guide", "Building focus through play, not screens", "Construir atención jugando, no con pantallas", "Technology", "Tecnología", "AAP media guidance, attention research"),
    (36, 48, "research", "Theory of mind and the false-belief test", "Teoría de la mente y la prueba de la falsa creencia", "Cognitive", "Cognitivo", "Wimmer & Perner, Sally-Anne task"),
    (48, 60, "article", "The marshmallow test, revisited", "La prueba del malvavisco, revisada", "Motivation", "Motivación", "delay of gratification, Mischel, Watts replication"),
    (48, 60, "guide", "Getting ready for school without drills", "Preparar para la escuela sin ejercicios repetitivos", "School Readiness", "Preparación Escolar", "executive function and school readiness, Diamond"),
    (48, 60, "research", "Games that train executive function", "Juegos que entrenan las funciones ejecutivas", "Neuroscience", "Neurociencia", "Tools of the Mind, Diamond & Lee"),
    (60, 84, "article", "Reading together after they can read", "Leer juntos cuando ya saben leer", "Communication", "Comunicación", "shared reading and comprehension"),
    (60, 84, "guide", "Praise that builds persistence", "Elogios que construyen perseverancia", "Motivation", "Motivación", "process praise, Dweck, Gunderson"),
    (60, 84, "research", "Why boredom feeds creativity", "Por qué el aburrimiento alimenta la creatividad", "Creativity", "Creatividad", "mind wandering and divergent thinking"),
    (84, 108, "article", "Intense interests and how to feed them", "Intereses intensos y cómo alimentarlos", "Learning", "Aprendizaje", "conceptual interests, DeLoache"),
    (84, 108, "guide", "Teaching kids to spot misinformation", "Enseñar a detectar desinformación", "Critical Thinking", "Pensamiento Crítico", "lateral reading, Stanford History Education Group"),
    (84, 108, "research", "Sleep, memory and the school-age brain", "Sueño, memoria y el cerebro en edad escolar", "Neuroscience", "Neurociencia", "sleep-dependent memory consolidation"),
    (108, 132, "article", "Who am I becoming? Identity before adolescence", "¿Quién estoy llegando a ser? Identidad antes de la adolescencia", "Identity", "Identidad", "self-concept development, Harter"),
    (108, 132, "guide", "Real responsibility at home", "Responsabilidad real en casa", "Responsibility", "Responsabilidad", "household contribution and self-efficacy"),
    (108, 132, "research", "Friendship quality and wellbeing in middle childhood", "Calidad de la amistad y bienestar en la niñez media", "Social", "Social", "peer relationships research, Bagwell"),
    (132, 144, "article", "Purpose projects for pre-teens", "Proyectos con propósito para preadolescentes", "Purpose", "Propósito", "youth purpose, Damon"),
    (132, 144, "guide", "Talking about phones before the first phone", "Hablar del celular antes del primer celular", "Technology", "Tecnología", "adolescent media use research"),
    (132, 144, "research", "The pre-teen brain and risk taking", "El cerebro preadolescente y el riesgo", "Neuroscience", "Neurociencia", "dual systems model, Steinberg"),
]

ARTICLE_DEFINITIONS: List[ArticleDefinition] = [ArticleDefinition(*row) for row in _ARTICLE_ROWS]


Definition = Union[AgeBandVariant, ArticleDefinition]


def unique_bands(definitions: Iterable[Definition]) -> List[AgeBand]:
    seen = {}
    for definition in definitions:
        band = definition.band
        seen.setdefault(band.key, band)
    return list(seen.values())


def band_for_age(months: int, bands: Sequence[AgeBand]) -> Optional[AgeBand]:
    for band in bands:
        if band.contains(months):
            return band
    return None


def parse_band_key(value: str) -> AgeBand:
    try:
        low, high = value.split("-", 1)
        band = AgeBand(int(low), int(high))
    except ValueError as exc:
        raise ValueError(f"Invalid band {value!r}; expected <age_min>-<age_max>") from exc
    if band.age_min > band.age_max:
        raise ValueError(f"Invalid band {value!r}; age_min is greater than age_max")
    return band


def variants_for_band(
    definitions: Sequence[AgeBandVariant],
    *,
    age_min: Optional[int] = None,
    age_max: Optional[int] = None,
) -> List[AgeBandVariant]:
    return [
        definition
        for definition in definitions
        if (age_min is None or definition.age_min == age_min)
        and (age_max is None or definition.age_max == age_max)
    ]
