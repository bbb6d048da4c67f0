# src/atlas_taskflow/core/__init__.py
"""
Core do Atlas TaskFlow.

Este pacote reúne as responsabilidades essenciais do orquestrador:
modelagem de tasks, construção do grafo de dependências, execução com
cache por identidade e rastreabilidade das runs.

Componentes principais:
    - config       → carregamento, merge, hashing e settings do engine
    - task         → parâmetros, descriptors, instâncias e contextos
    - engine       → grafo, scheduler, invalidação e preview
    - traceability → Manifest e Event Log das runs

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
    - Construção do grafo é pura; efeitos ficam no Scheduler e no store
    - A mesma entrada produz sempre o mesmo grafo e a mesma ordem

Limites explícitos:
    - Não define tasks concretas de domínio
    - Não depende de notebooks, CLI ou serviços externos
"""
