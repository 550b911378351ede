"""
Конвейер обработки стереопары.

Модули:
    config: Параметры конвейера и перечисления алгоритмов
    disparity: Оценка и квантование карт диспаритета
    region_tree: Дерево регионов по слоям глубины
    work_queue: Общая очередь задач и пул исполнителей
    kernel_estimation: Оценка ядер потомков и выбор кандидатов
    scheduler: Иерархический обход дерева (распространение, уточнение)
    compositor: Деконволюция по регионам и сборка изображения
    reader: Загрузка ядер верхнего уровня и отладочный вывод
    core: Фасад DepthDeblur
"""
