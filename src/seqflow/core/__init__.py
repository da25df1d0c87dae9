"""
Core do SeqFlow.

Pacotes:
    - data         → formatos, ports tipados e Data
    - pipeline     → contrato de Step, status/resultados de tasks, contextos
    - engine       → planner, executor concorrente e fachada Engine
    - config       → carregamento, merge e hashing de configuração
    - traceability → Workflow Manifest e Event Log

O core não define Steps de domínio nem invoca ferramentas externas.
"""
