"""Prompt template system with named variables, pluggable loaders and built-in assessment prompts."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from string import Template
from typing import Any, Dict, List, Optional, Union

import yaml


class TemplateFormat(Enum):
    """Supported template formats."""
    STRING = "string"
    YAML = "yaml"
    JSON = "json"


@dataclass
class PromptVariable:
    """Represents a variable in a prompt template."""
    name: str
    description: str
    required: bool = True
    default_value: Optional[Any] = None


@dataclass
class PromptTemplate:
    """Represents a prompt template with variables and metadata."""
    name: str
    template: str
    description: str = ""
    variables: List[PromptVariable] = field(default_factory=list)
    format: TemplateFormat = TemplateFormat.STRING
    tags: List[str] = field(default_factory=list)
    version: str = "1.0"

    def render(self, **kwargs) -> str:
        """Render the template with provided variables."""
        required_vars = {var.name for var in self.variables if var.required}
        missing_required = required_vars - set(kwargs)
        if missing_required:
            raise ValueError(f"Missing required variables: {sorted(missing_required)}")

        render_vars = dict(kwargs)
        for var in self.variables:
            if var.name not in render_vars and var.default_value is not None:
                render_vars[var.name] = var.default_value

        try:
            return Template(self.template).substitute(render_vars)
        except KeyError as e:
            raise ValueError(f"Template rendering failed: missing variable {e}") from e


class TemplateLoader(ABC):
    """Abstract base class for template loaders."""

    @abstractmethod
    async def load_template(self, template_name: str) -> PromptTemplate:
        """Load a template by name."""
        pass

    @abstractmethod
    async def list_templates(self) -> List[str]:
        """List all available template names."""
        pass


class FileTemplateLoader(TemplateLoader):
    """Load templates from a directory of .yaml, .yml, .json or .txt files."""

    EXTENSIONS = (".yaml", ".yml", ".json", ".txt")

    def __init__(self, templates_dir: Union[str, Path]):
        self.templates_dir = Path(templates_dir)

    async def load_template(self, template_name: str) -> PromptTemplate:
        for ext in self.EXTENSIONS:
            template_path = self.templates_dir / f"{template_name}{ext}"
            if template_path.exists():
                return self._load_from_file(template_path)

        raise FileNotFoundError(f"Template '{template_name}' not found in {self.templates_dir}")

    async def list_templates(self) -> List[str]:
        if not self.templates_dir.is_dir():
            return []
        names = {
            path.stem
            for path in self.templates_dir.iterdir()
            if path.suffix in self.EXTENSIONS
        }
        return sorted(names)

    def _load_from_file(self, template_path: Path) -> PromptTemplate:
        content = template_path.read_text(encoding="utf-8")

        if template_path.suffix in (".yaml", ".yml"):
            return self._from_mapping(template_path.stem, yaml.safe_load(content), TemplateFormat.YAML)
        elif template_path.suffix == ".json":
            return self._from_mapping(template_path.stem, json.loads(content), TemplateFormat.JSON)
        else:
            return PromptTemplate(
                name=template_path.stem,
                template=content,
                description=f"Plain text template: {template_path.stem}",
                format=TemplateFormat.STRING
            )

    def _from_mapping(self, name: str, data: Dict[str, Any], fmt: TemplateFormat) -> PromptTemplate:
        if not isinstance(data, dict) or "template" not in data:
            raise ValueError(f"Template file for '{name}' must define a 'template' key")

        return PromptTemplate(
            name=name,
            template=data["template"],
            description=data.get("description", ""),
            variables=[PromptVariable(**var) for var in data.get("variables", [])],
            format=fmt,
            tags=data.get("tags", []),
            version=str(data.get("version", "1.0"))
        )


class InMemoryTemplateLoader(TemplateLoader):
    """In-memory template loader for built-in and dynamic templates."""

    def __init__(self):
        self.templates: Dict[str, PromptTemplate] = {}

    def add_template(self, template: PromptTemplate):
        self.templates[template.name] = template

    async def load_template(self, template_name: str) -> PromptTemplate:
        if template_name not in self.templates:
            raise KeyError(f"Template '{template_name}' not found")
        return self.templates[template_name]

    async def list_templates(self) -> List[str]:
        return list(self.templates.keys())


EVIDENCE_ANALYSIS_TEMPLATE = """Eres un EVALUADOR PEDAGÓGICO RIGUROSO que analiza UNA EVIDENCIA ESPECÍFICA de manera objetiva y precisa.

===== CONTEXTO DE LA TAREA =====
- Tarea: $task_title
- Tipo de evidencia: $evidence_type
- Asignatura: $subject
- Rúbrica/Instrucciones: $rubric
- Competencias evaluadas: $competencies
- Tiempo invertido: $time_spent
- Perspectiva docente disponible: $has_perspective

===== CONTENIDO DEL ESTUDIANTE =====
$content

===== CRITERIOS DE EVALUACIÓN =====
1. CUMPLIMIENTO DE INSTRUCCIONES: ¿Realizó exactamente lo solicitado?
2. CALIDAD TÉCNICA: errores ortográficos, gramaticales, precisión, presentación
3. COMPRENSIÓN DEL TEMA: ¿Demuestra entendimiento del contenido?
4. NIVEL DE DESARROLLO: apropiado para la edad y el grado esperados
5. ESFUERZO EVIDENTE: ¿Se observa dedicación en el trabajo?

===== PUNTUACIÓN =====
- 90-100: Excelente calidad, supera expectativas
- 80-89: Buena calidad, errores mínimos
- 70-79: Calidad aceptable, cumple parcialmente
- 60-69: Calidad básica, necesita mejora significativa

No inventes conclusiones sobre estilos de aprendizaje que no se puedan observar en esta evidencia.

===== FORMATO DE RESPUESTA =====
Responde ÚNICAMENTE con un objeto JSON válido con estas claves:
adaptedScore (número entre 60 y 100), competencyLevel (Iniciando, En desarrollo, Competente o Avanzado),
taskCompliance, technicalQuality, contentUnderstanding, observedSkills, identifiedWeaknesses,
evidenceSpecificFindings, scoreJustification, improvementSuggestions, modalityUsedInTask."""


STUDENT_CHAT_TEMPLATE = """Eres un asistente educativo especializado en análisis pedagógico. Te preguntarán sobre el estudiante $student_name.

$student_context

INSTRUCCIONES:
1. Responde SIEMPRE mencionando al estudiante por su nombre ($student_name)
2. Basa tus respuestas ÚNICAMENTE en la información proporcionada
3. Si no tienes información sobre algo específico, menciona que no está disponible en los registros
4. Proporciona respuestas específicas y pedagógicamente útiles
5. Sugiere acciones concretas cuando sea apropiado
6. Mantén un tono profesional y educativo

PREGUNTA DEL DOCENTE: $question

Responde de manera específica sobre $student_name, usando únicamente la información proporcionada:"""


class TemplateManager:
    """High-level template management with caching and multiple loaders."""

    def __init__(self, default_loader: Optional[TemplateLoader] = None):
        self.loaders: Dict[str, TemplateLoader] = {}
        self.template_cache: Dict[str, PromptTemplate] = {}
        self.default_loader = default_loader or InMemoryTemplateLoader()

        self._init_builtin_templates()

    def add_loader(self, name: str, loader: TemplateLoader):
        """Add a named template loader."""
        self.loaders[name] = loader

    async def get_template(self, template_name: str, loader_name: Optional[str] = None) -> PromptTemplate:
        """Get a template by name, with caching."""
        cache_key = f"{loader_name or 'default'}:{template_name}"

        if cache_key in self.template_cache:
            return self.template_cache[cache_key]

        loader = self.loaders.get(loader_name) if loader_name else self.default_loader
        if not loader:
            raise ValueError(f"Loader '{loader_name}' not found")

        template = await loader.load_template(template_name)
        self.template_cache[cache_key] = template
        return template

    async def render_template(
        self,
        template_name: str,
        variables: Dict[str, Any],
        loader_name: Optional[str] = None
    ) -> str:
        template = await self.get_template(template_name, loader_name)
        return template.render(**variables)

    def clear_cache(self):
        self.template_cache.clear()

    def _init_builtin_templates(self):
        """Register the built-in assessment prompts with an in-memory default loader."""
        if not isinstance(self.default_loader, InMemoryTemplateLoader):
            return

        self.default_loader.add_template(PromptTemplate(
            name="evidence_analysis",
            template=EVIDENCE_ANALYSIS_TEMPLATE,
            description="Rigorous evaluator prompt requesting a JSON assessment of one evidence item",
            variables=[
                PromptVariable("task_title", "Title of the task the evidence answers"),
                PromptVariable("evidence_type", "texto, imagen, video or audio"),
                PromptVariable("subject", "Subject of the task"),
                PromptVariable("rubric", "Rubric or instructions", False, "Evaluar según criterios académicos estándar"),
                PromptVariable("competencies", "Competencies being evaluated", False, "No especificadas"),
                PromptVariable("time_spent", "Time spent on the task", False, "No registrado"),
                PromptVariable("has_perspective", "Whether a teacher perspective exists", False, "No"),
                PromptVariable(
                    "content", "Extracted student content", False,
                    "Solo contenido visual/multimedia - evaluar según lo observable"
                ),
            ],
            tags=["evidence", "analysis", "json"]
        ))

        self.default_loader.add_template(PromptTemplate(
            name="student_chat",
            template=STUDENT_CHAT_TEMPLATE,
            description="Teacher question about a student, answered from the student's records",
            variables=[
                PromptVariable("student_name", "Name of the student"),
                PromptVariable("student_context", "Formatted records for the student"),
                PromptVariable("question", "The teacher's question"),
            ],
            tags=["chat", "student"]
        ))


# Global template manager instance
_global_template_manager: Optional[TemplateManager] = None


def get_template_manager() -> TemplateManager:
    """Get the global template manager instance."""
    global _global_template_manager
    if _global_template_manager is None:
        _global_template_manager = TemplateManager()
    return _global_template_manager
