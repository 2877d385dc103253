from xcgen.config import BuildScriptOption, GeneratorConfig, ProjectLayout, ResourceSourcePaths
from xcgen.details.label import BuildLabel
from xcgen.details.options import GeneratorOptions, OptionKey
